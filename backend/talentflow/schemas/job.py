from pydantic import BaseModel, Field, field_validator

from ..utils.validation import clean_tags, validate_job_status


class JobCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=150)
    slug: str | None = Field(default=None, max_length=180)
    status: str | None = Field(default="open")
    tags: list[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v

    @field_validator("status")
    @classmethod
    def _check_status(cls, v: str | None) -> str:
        return validate_job_status(v)

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, v):
        return clean_tags(v)


class JobUpdate(BaseModel):
    # Board position is not editable here; see ReorderIn.
    title: str | None = Field(default=None, min_length=1, max_length=150)
    slug: str | None = Field(default=None, min_length=1, max_length=180)
    status: str | None = None
    tags: list[str] | None = None

    @field_validator("status")
    @classmethod
    def _check_status(cls, v: str | None) -> str | None:
        return validate_job_status(v) if v is not None else None

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, v):
        return clean_tags(v) if v is not None else None


class ReorderIn(BaseModel):
    # Zero-based position on the full board, after the job is lifted out.
    to_index: int = Field(..., ge=0)
