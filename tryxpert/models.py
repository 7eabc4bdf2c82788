"""
Boundary schema for rows coming from and going to Supabase.
Rows are validated here once; the rest of the code trusts these types.
"""
import json
import logging
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from tryxpert.errors import InputValidationError
from tryxpert.status import parse_timestamp

logger = logging.getLogger(__name__)

UNLIMITED_DURATION = -1
MAX_DURATION_MINUTES = 1440


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    ESSAY = "essay"


def parse_json_list(value, field: str = "value") -> list:
    """Columns stored as JSON strings. Unparseable content becomes an empty list."""
    if value is None:
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Could not parse %s as JSON, using empty list", field)
            return []
    if not isinstance(value, list):
        logger.warning("Expected a list for %s, got %s", field, type(value).__name__)
        return []
    return value


class Question(BaseModel):
    id: int
    tryout_id: int
    question_text: str
    question_type: QuestionType
    options: List[str] = Field(default_factory=list)
    correct_answer: str = ""
    explanation: Optional[str] = None
    points: int = Field(default=1, ge=1)
    order_number: int = 0

    @field_validator("options", mode="before")
    @classmethod
    def _parse_options(cls, v):
        return parse_json_list(v, "options")

    @field_validator("points", mode="before")
    @classmethod
    def _default_points(cls, v):
        return 1 if v is None else v

    @field_validator("correct_answer", mode="before")
    @classmethod
    def _default_answer(cls, v):
        return "" if v is None else v


class Tryout(BaseModel):
    id: int
    title: str
    subject: str
    start_date: datetime
    end_date: datetime
    duration: int = UNLIMITED_DURATION
    difficulty: Difficulty = Difficulty.MEDIUM
    participants: int = Field(default=0, ge=0)
    description: Optional[str] = None
    syllabus: List[str] = Field(default_factory=list)
    features: List[str] = Field(default_factory=list)
    image_url: Optional[str] = None
    total_questions: Optional[int] = None
    questions: List[Question] = Field(default_factory=list)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _aware(cls, v):
        return parse_timestamp(v)

    @field_validator("syllabus", "features", mode="before")
    @classmethod
    def _parse_lists(cls, v, info):
        return parse_json_list(v, info.field_name)

    @field_validator("duration")
    @classmethod
    def _duration(cls, v):
        if v != UNLIMITED_DURATION and v < 1:
            raise ValueError("duration must be -1 (unlimited) or a positive number of minutes")
        return v

    @model_validator(mode="after")
    def _window(self):
        if self.start_date >= self.end_date:
            raise ValueError("start_date must be before end_date")
        return self

    @property
    def is_unlimited(self) -> bool:
        return self.duration == UNLIMITED_DURATION

    @property
    def duration_seconds(self) -> Optional[int]:
        return None if self.is_unlimited else self.duration * 60

    @property
    def is_editable(self) -> bool:
        return self.participants == 0


class UserAnswer(BaseModel):
    question_id: int
    selected_option: Optional[str] = None
    essay_answer: Optional[str] = None
    flagged: bool = False

    @classmethod
    def blank(cls, question_id: int) -> "UserAnswer":
        return cls(question_id=question_id)


class QuestionResult(BaseModel):
    question_id: int
    selected_option: Optional[str] = None
    essay_answer: Optional[str] = None
    flagged: bool = False
    # None = essay awaiting manual grading
    is_correct: Optional[bool] = None


class Result(BaseModel):
    tryout_id: int
    answers: List[QuestionResult]
    earned_points: int
    total_points: int
    percentage: int
    correct_count: int
    incorrect_count: int
    unanswered_count: int
    start_time: datetime
    end_time: datetime
    time_taken_seconds: int

    @property
    def category(self) -> str:
        from tryxpert.scorer import score_category

        return score_category(self.percentage)


# --- Forms ---

class TryoutForm(BaseModel):
    title: str = Field(min_length=1)
    subject: str = Field(min_length=1)
    start_date: datetime
    end_date: datetime
    # None = no time limit
    duration: Optional[int] = Field(default=None, ge=1, le=MAX_DURATION_MINUTES)
    difficulty: Difficulty
    syllabus: List[str] = Field(default_factory=list)
    features: List[str] = Field(default_factory=list)
    description: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("title", "subject", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _aware(cls, v):
        return parse_timestamp(v)

    @model_validator(mode="after")
    def _window(self):
        if self.start_date >= self.end_date:
            raise ValueError("End date must be after start date")
        return self

    def to_row(self) -> dict:
        row = self.model_dump(mode="json")
        row["duration"] = UNLIMITED_DURATION if self.duration is None else self.duration
        row["start_date"] = self.start_date.isoformat()
        row["end_date"] = self.end_date.isoformat()
        return row


class QuestionForm(BaseModel):
    question_text: str = Field(min_length=5)
    question_type: QuestionType
    options: List[str] = Field(default_factory=list)
    correct_answer: str = Field(min_length=1)
    explanation: Optional[str] = None
    points: int = Field(default=1, ge=1)

    @field_validator("options")
    @classmethod
    def _drop_blank(cls, v):
        return [o.strip() for o in v if o and o.strip()]

    @model_validator(mode="after")
    def _by_type(self):
        if self.question_type is QuestionType.MULTIPLE_CHOICE:
            if len(self.options) < 2:
                raise ValueError("Multiple choice questions must have at least 2 options")
            if len(set(self.options)) != len(self.options):
                raise ValueError("All options must be unique")
            if self.correct_answer not in self.options:
                raise ValueError("Correct answer must be one of the options")
        elif self.question_type is QuestionType.TRUE_FALSE:
            if self.correct_answer.lower() not in ("true", "false"):
                raise ValueError("Correct answer must be 'true' or 'false'")
        return self

    def to_row(self) -> dict:
        row = self.model_dump(mode="json")
        row["explanation"] = self.explanation or ""
        if self.question_type is QuestionType.MULTIPLE_CHOICE:
            row["options"] = self.options
        else:
            row["options"] = None
        if self.question_type is QuestionType.TRUE_FALSE:
            row["correct_answer"] = self.correct_answer.lower()
        return row


def validate_form(model, data: dict):
    """Validate form input, turning pydantic errors into a field -> message map."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        errors = {}
        for err in e.errors():
            field = ".".join(str(p) for p in err["loc"]) or "__all__"
            errors.setdefault(field, err["msg"].removeprefix("Value error, "))
        logger.info("Form validation failed: %s", errors)
        raise InputValidationError("Please fix the highlighted fields.", errors) from e
