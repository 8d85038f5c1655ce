"""
Models for surveys, their questions and the answers given during a canvass.
"""

import enum

from pydantic import Field, model_validator

from dal.models.common import TimestampedModel, PyObjectId

DEFAULT_RANGE_MIN = 1
DEFAULT_RANGE_MAX = 10


class QuestionType(enum.IntEnum):
    YES_NO = 0
    YES_NO_MAYBE = 1
    CHOICE_MULTISEL = 2
    CHOICE_SINGLESEL = 3
    RANKING = 4
    QUERY = 5

# Options that are fixed by the question type
FIXED_OPTIONS = {
    QuestionType.YES_NO: ["Yes", "No"],
    QuestionType.YES_NO_MAYBE: ["Yes", "No", "Maybe"],
}


class Question(TimestampedModel):
    """
    A survey question.
    Yes/no style questions always get their fixed options; ranking questions default their range.
    """

    type: int
    question: str = Field(min_length=1)
    options: list[str] = Field(default_factory=list)
    range_min: int = DEFAULT_RANGE_MIN
    range_max: int = DEFAULT_RANGE_MAX

    @model_validator(mode="after")
    def _apply_question_type(self):
        qtype = QuestionType(self.type)
        if qtype in FIXED_OPTIONS:
            self.options = list(FIXED_OPTIONS[qtype])
        if qtype == QuestionType.RANKING and self.range_min > self.range_max:
            raise ValueError("range_min must not be greater than range_max")
        return self


class Answer(TimestampedModel):
    answer: str = Field(min_length=1)
    question: PyObjectId


class Survey(TimestampedModel):
    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    questions: list[PyObjectId] = Field(default_factory=list)
