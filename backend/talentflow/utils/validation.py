"""
Validation utilities for input validation and error handling.
"""
import re
from typing import Any, Iterable

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .error_handlers import ValidationError, get_error_message

JOB_STATUSES = ("open", "closed", "draft", "archived")
# Pipeline columns, left to right.
CANDIDATE_STAGES = ("applied", "screening", "interview", "offer", "hired")


def validate_string_field(
    value: Any,
    field_name: str,
    min_length: int = 1,
    max_length: int = 1000,
    required: bool = True,
    pattern: str | None = None,
) -> str | None:
    """Validate a string field with common rules."""
    if value is None:
        if required:
            raise ValidationError(f"{field_name} is required")
        return None

    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")

    value = value.strip()

    if required and not value:
        raise ValidationError(f"{field_name} cannot be empty")

    if value and len(value) < min_length:
        raise ValidationError(f"{field_name} must be at least {min_length} characters")

    if len(value) > max_length:
        raise ValidationError(f"{field_name} must not exceed {max_length} characters")

    if pattern and not re.match(pattern, value):
        raise ValidationError(f"{field_name} format is invalid")

    return value


def validate_integer_field(
    value: Any,
    field_name: str,
    min_value: int | None = None,
    max_value: int | None = None,
    required: bool = True,
) -> int | None:
    """Validate an integer field."""
    if value is None:
        if required:
            raise ValidationError(f"{field_name} is required")
        return None

    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a valid integer")

    if not isinstance(value, int):
        try:
            value = int(value)
        except (ValueError, TypeError):
            raise ValidationError(f"{field_name} must be a valid integer")

    if min_value is not None and value < min_value:
        raise ValidationError(f"{field_name} must be at least {min_value}")

    if max_value is not None and value > max_value:
        raise ValidationError(f"{field_name} must not exceed {max_value}")

    return value


def validate_job_status(status: str | None) -> str:
    """Validate job status."""
    if not status:
        return "open"

    status = status.strip().lower()
    if status not in JOB_STATUSES:
        raise ValidationError(
            f"Invalid status. Must be one of: {', '.join(JOB_STATUSES)}"
        )

    return status


def validate_stage(stage: str | None) -> str:
    """Validate a candidate pipeline stage."""
    if not stage or not isinstance(stage, str):
        raise ValidationError("Stage is required")

    stage = stage.strip().lower()
    if stage not in CANDIDATE_STAGES:
        raise ValidationError(
            f"Invalid stage. Must be one of: {', '.join(CANDIDATE_STAGES)}"
        )

    return stage


def generate_slug(title: str) -> str:
    """Lowercase, drop punctuation, and join words with dashes."""
    slug = (title or "").lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    return re.sub(r"\s+", "-", slug)


def ensure_slug_unique(slug: str, jobs: Iterable[dict], *, exclude_id: int | None = None) -> str:
    """Reject a slug that another visible job already uses."""
    for job in jobs:
        if exclude_id is not None and job.get("id") == exclude_id:
            continue
        if job.get("slug") == slug:
            raise ValidationError(get_error_message("slug_not_unique"), details={"slug": slug})
    return slug


def clean_tags(tags: Any) -> list[str]:
    """Accept a list or a comma separated string; strip blanks and duplicates, keep order."""
    if tags is None:
        return []
    if isinstance(tags, str):
        tags = tags.split(",")
    if not isinstance(tags, (list, tuple, set)):
        raise ValidationError("Tags must be a list")

    cleaned: list[str] = []
    for tag in tags:
        t = str(tag).strip()
        if t and t not in cleaned:
            cleaned.append(t)
    return cleaned


def parse_model(model_cls: type[BaseModel], payload: Any):
    """Validate a payload against a pydantic model, reporting problems as ValidationError."""
    try:
        return model_cls.model_validate(payload or {})
    except PydanticValidationError as e:
        problems = []
        for err in e.errors():
            loc = ".".join(str(part) for part in err.get("loc", ()))
            msg = str(err.get("msg", "invalid value")).removeprefix("Value error, ")
            problems.append(f"{loc}: {msg}" if loc else msg)
        raise ValidationError(
            "; ".join(problems) or get_error_message("validation_error"),
            details={"errors": problems},
        )
