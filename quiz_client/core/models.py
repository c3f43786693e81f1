"""Domain models for the quiz client."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from quiz_client.constants.quiz_constants import (
    DEFAULT_DURATION_MINUTES,
    DEFAULT_QUESTION_POINTS,
    MULTI_SELECT_SEPARATOR,
)


class QuestionKind(str, Enum):
    SINGLE_CHOICE = "SINGLE_CHOICE"
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    TRUE_FALSE = "TRUE_FALSE"


class QuizStatus(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class AttemptStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    EXPIRED = "expired"


@dataclass(slots=True)
class QuizOption:
    """Answer option; `value` is the token stored and sent for a selection."""

    id: int
    label: str
    value: str
    is_correct: bool = False  # Never shown to the student before submission
    order: int = 0


@dataclass(slots=True)
class QuizQuestion:
    id: int
    content: str
    kind: QuestionKind = QuestionKind.SINGLE_CHOICE
    options: list[QuizOption] = field(default_factory=list)
    points: int = DEFAULT_QUESTION_POINTS
    order: int = 0
    explanation: str | None = None

    @property
    def is_multi_select(self) -> bool:
        return self.kind is QuestionKind.MULTIPLE_CHOICE

    def find_option_by_value(self, value: str) -> QuizOption | None:
        return next((option for option in self.options if option.value == value), None)

    def find_option_by_id(self, option_id: int) -> QuizOption | None:
        return next((option for option in self.options if option.id == option_id), None)

    def correct_option_ids(self) -> list[int]:
        return [option.id for option in self.options if option.is_correct]


@dataclass(slots=True)
class Quiz:
    id: int
    title: str
    duration_minutes: int = DEFAULT_DURATION_MINUTES
    questions: list[QuizQuestion] = field(default_factory=list)
    status: QuizStatus = QuizStatus.DRAFT
    description: str | None = None
    question_count: int = 0

    def find_question(self, question_id: int) -> QuizQuestion | None:
        return next((question for question in self.questions if question.id == question_id), None)


@dataclass(slots=True)
class StudentIdentity:
    """Anonymous student details entered once per client session."""

    name: str
    date_of_birth: str | None = None
    class_name: str | None = None


@dataclass(slots=True)
class LocalAttempt:
    """Client-owned record of an attempt in progress, one per quiz."""

    attempt_id: str
    quiz_id: int
    student: StudentIdentity
    started_at: datetime
    answers: dict[int, str] = field(default_factory=dict)
    server_attempt_id: int | None = None


@dataclass(slots=True)
class ServerAttempt:
    id: int
    quiz_id: int | None = None
    student_id: int | None = None
    student_name: str | None = None
    date_of_birth: str | None = None
    class_name: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    score: float | None = None
    status: AttemptStatus = AttemptStatus.IN_PROGRESS

    @property
    def display_name(self) -> str:
        if self.student_name:
            return self.student_name
        if self.student_id is not None:
            return f"HS-{self.student_id}"
        return "Unknown student"


@dataclass(slots=True)
class StudentAnswer:
    id: int | None
    attempt_id: int | None
    question_id: int | None
    selected_option_id: int | None = None
    selected_option: str | None = None
    is_correct: bool | None = None  # Computed server-side
    time_spent: float | None = None
    created_at: datetime | None = None


@dataclass(slots=True)
class PaginationMeta:
    total: int
    page: int
    limit: int
    total_pages: int | None = None


@dataclass(slots=True)
class Page:
    """One page of a paginated listing."""

    items: list
    meta: PaginationMeta


def split_answer_tokens(answer: str | None) -> list[str]:
    """Return the selected tokens of a stored answer, skipping blanks."""
    if not answer:
        return []
    return [token for token in answer.split(MULTI_SELECT_SEPARATOR) if token]


def join_answer_tokens(tokens: list[str]) -> str:
    return MULTI_SELECT_SEPARATOR.join(tokens)
