from pydantic import BaseModel, Field, field_validator

from ..utils.validation import validate_stage


class StageUpdate(BaseModel):
    stage: str

    @field_validator("stage")
    @classmethod
    def _check_stage(cls, v: str) -> str:
        return validate_stage(v)


class NoteCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    author: str | None = Field(default=None, max_length=120)

    @field_validator("content")
    @classmethod
    def _strip_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Note cannot be empty")
        return v
