"""
Assessment rules

Structural checks for an assessment's question list, answer validation as the
builder preview runs it, and conditional visibility. Questions are handled as the
plain dicts the store keeps; payloads from callers are first normalized through the
pydantic schemas.
"""

from typing import Any

from ..schemas.assessment import CHOICE_TYPES, TEXT_TYPES, AssessmentIn
from ..utils.error_handlers import ValidationError
from ..utils.validation import parse_model


def _questions_by_id(questions: list[dict]) -> dict[str, dict]:
    return {q["id"]: q for q in questions}


def _conditional_target(question: dict) -> str | None:
    rule = question.get("conditional") or {}
    return rule.get("question_id") or None


def normalize_assessment(payload: dict) -> dict:
    """Validate an assessment payload and return store-ready fields."""
    data = parse_model(AssessmentIn, payload)
    questions = [q.model_dump() for q in data.questions]
    validate_questions(questions)
    return {"job_id": data.job_id, "title": data.title.strip(), "questions": questions}


def validate_questions(questions: list[dict]) -> None:
    by_id: dict[str, dict] = {}
    for q in questions:
        if q["id"] in by_id:
            raise ValidationError(f"Duplicate question id: {q['id']}", details={"question_id": q["id"]})
        by_id[q["id"]] = q

    for q in questions:
        if q["type"] in CHOICE_TYPES and not [o for o in q.get("options") or [] if str(o).strip()]:
            raise ValidationError(
                f"Question {q['id']} needs at least one option",
                details={"question_id": q["id"]},
            )
        rules = q.get("validation") or {}
        lo, hi = rules.get("min_length"), rules.get("max_length")
        if lo is not None and hi is not None and lo > hi:
            raise ValidationError(f"Question {q['id']}: min_length exceeds max_length")
        lo, hi = rules.get("min"), rules.get("max")
        if lo is not None and hi is not None and lo > hi:
            raise ValidationError(f"Question {q['id']}: min exceeds max")

        target = _conditional_target(q)
        if target is None:
            continue
        if target == q["id"]:
            raise ValidationError(f"Question {q['id']} cannot depend on itself")
        if target not in by_id:
            raise ValidationError(
                f"Question {q['id']} depends on unknown question {target}",
                details={"question_id": q["id"], "depends_on": target},
            )

    _reject_conditional_cycles(by_id)


def _reject_conditional_cycles(by_id: dict[str, dict]) -> None:
    # Each question has at most one dependency, so following the chain is enough.
    for start in by_id:
        seen = {start}
        current = _conditional_target(by_id[start])
        while current is not None:
            if current in seen:
                raise ValidationError(
                    f"Conditional questions form a cycle starting at {start}",
                    details={"question_id": start},
                )
            seen.add(current)
            current = _conditional_target(by_id[current]) if current in by_id else None


def remove_question(questions: list[dict], question_id: str) -> list[dict]:
    """Drop a question and clear any conditional rule that pointed at it."""
    remaining = []
    for q in questions:
        if q["id"] == question_id:
            continue
        if _conditional_target(q) == question_id:
            q = {**q, "conditional": None}
        remaining.append(q)
    return remaining


def is_question_visible(question: dict, answers: dict[str, Any]) -> bool:
    target = _conditional_target(question)
    if target is None:
        return True
    return answers.get(target) == (question.get("conditional") or {}).get("expected_value")


def validate_answer(question: dict, value: Any) -> str | None:
    """Return a user-facing message for an invalid answer, or None."""
    rules = question.get("validation") or {}
    qtype = question.get("type")

    if rules.get("required"):
        if value is None or value == "" or value is False:
            return "This field is required"
        if qtype == "multi-choice" and isinstance(value, (list, tuple)) and len(value) == 0:
            return "Please select at least one option"

    if value is None or value == "":
        return None

    if qtype in TEXT_TYPES:
        text = str(value)
        if rules.get("min_length") and len(text) < rules["min_length"]:
            return f"Minimum {rules['min_length']} characters required"
        if rules.get("max_length") and len(text) > rules["max_length"]:
            return f"Maximum {rules['max_length']} characters allowed"

    if qtype == "numeric":
        try:
            num = float(value)
        except (TypeError, ValueError):
            return "Value must be a number"
        if rules.get("min") is not None and num < rules["min"]:
            return f"Value must be at least {rules['min']:g}"
        if rules.get("max") is not None and num > rules["max"]:
            return f"Value must be at most {rules['max']:g}"

    if qtype in CHOICE_TYPES:
        options = question.get("options") or []
        picked = value if isinstance(value, (list, tuple)) else [value]
        if qtype == "single-choice" and isinstance(value, (list, tuple)):
            return "Select a single option"
        if any(p not in options for p in picked):
            return "Select one of the listed options"

    return None


def validate_response(assessment: dict, answers: dict[str, Any]) -> dict[str, str]:
    """Errors keyed by question id. Hidden questions are not checked."""
    errors: dict[str, str] = {}
    for q in assessment.get("questions") or []:
        if not is_question_visible(q, answers):
            continue
        message = validate_answer(q, answers.get(q["id"]))
        if message:
            errors[q["id"]] = message
    unknown = sorted(set(answers) - set(_questions_by_id(assessment.get("questions") or [])))
    for question_id in unknown:
        errors[question_id] = "Unknown question"
    return errors
