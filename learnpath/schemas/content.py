"""Shapes produced by the external content generator."""

from pydantic import BaseModel, Field, field_validator, model_validator

QUIZ_OPTION_COUNT = 4


class QuizQuestion(BaseModel):
    """A multiple-choice question with exactly four options."""

    question: str = Field(min_length=1)
    options: list[str]
    correct_answer: int

    @field_validator("options")
    @classmethod
    def _four_options(cls, value: list[str]) -> list[str]:
        if len(value) != QUIZ_OPTION_COUNT:
            raise ValueError(f"expected {QUIZ_OPTION_COUNT} options, got {len(value)}")
        return value

    @model_validator(mode="after")
    def _answer_in_range(self) -> "QuizQuestion":
        if not 0 <= self.correct_answer < len(self.options):
            raise ValueError(f"correct_answer {self.correct_answer} out of range")
        return self


class QuizAnalysis(BaseModel):
    """Generated feedback for a finished quiz."""

    strong_areas: list[str] = Field(default_factory=list)
    weak_areas: list[str] = Field(default_factory=list)
    summary: str = ""
