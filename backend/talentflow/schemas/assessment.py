from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, field_validator

CHOICE_TYPES = ("single-choice", "multi-choice")
TEXT_TYPES = ("short-text", "long-text")


class ValidationRules(BaseModel):
    required: bool = False
    min_length: int | None = Field(default=None, ge=0)
    max_length: int | None = Field(default=None, ge=0)
    min: float | None = None
    max: float | None = None


class ConditionalRule(BaseModel):
    """Show the owning question only when ``question_id`` was answered with ``expected_value``."""

    question_id: str = Field(..., min_length=1)
    expected_value: Any = None


class _QuestionBase(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    text: str = Field(default="", max_length=2000)
    validation: ValidationRules = Field(default_factory=ValidationRules)
    conditional: ConditionalRule | None = None

    @field_validator("conditional", mode="before")
    @classmethod
    def _empty_conditional(cls, v):
        # The builder stores a cleared rule as {}.
        if not v:
            return None
        if isinstance(v, dict) and not v.get("question_id"):
            return None
        return v


class SingleChoiceQuestion(_QuestionBase):
    type: Literal["single-choice"]
    options: list[str] = Field(default_factory=list)


class MultiChoiceQuestion(_QuestionBase):
    type: Literal["multi-choice"]
    options: list[str] = Field(default_factory=list)


class ShortTextQuestion(_QuestionBase):
    type: Literal["short-text"]


class LongTextQuestion(_QuestionBase):
    type: Literal["long-text"]


class NumericQuestion(_QuestionBase):
    type: Literal["numeric"]


class FileUploadQuestion(_QuestionBase):
    type: Literal["file-upload"]


Question = Annotated[
    Union[
        SingleChoiceQuestion,
        MultiChoiceQuestion,
        ShortTextQuestion,
        LongTextQuestion,
        NumericQuestion,
        FileUploadQuestion,
    ],
    Field(discriminator="type"),
]


class AssessmentIn(BaseModel):
    job_id: int = Field(..., ge=1)
    title: str = Field(default="New Assessment", min_length=1, max_length=255)
    questions: list[Question] = Field(default_factory=list)


class ResponseIn(BaseModel):
    assessment_id: int = Field(..., ge=1)
    candidate_id: int | None = Field(default=None, ge=1)
    answers: dict[str, Any] = Field(default_factory=dict)
