"""Convert backend payloads into the canonical client models.

The backend has shipped several field-naming conventions over time
(snake_case, camelCase, nested ``student`` objects). Each entity is read
through a resolution table: an ordered tuple of candidate source fields
followed by a default. Parsing is lenient on purpose; a malformed payload
degrades to defaults or an empty sequence instead of raising, so callers
never have to guard against shape errors.

Candidate fields may be dotted (``"student.fullName"``) to reach into a
nested object.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Any

from quiz_client.constants.quiz_constants import DEFAULT_DURATION_MINUTES, DEFAULT_QUESTION_POINTS
from quiz_client.core.models import (
    AttemptStatus,
    Page,
    PaginationMeta,
    QuestionKind,
    Quiz,
    QuizOption,
    QuizQuestion,
    QuizStatus,
    ServerAttempt,
    StudentAnswer,
)

_QUIZ_TITLE_FIELDS = ("title", "name")
_QUIZ_DURATION_FIELDS = ("timeLimit", "duration", "time_limit")
_QUIZ_QUESTION_COUNT_FIELDS = ("number_of_questions", "numberOfQuestions")

_QUESTION_PROMPT_FIELDS = ("content", "question")

_OPTION_LABEL_FIELDS = ("content", "label")
_OPTION_CORRECT_FIELDS = ("isCorrect", "is_correct")

_ATTEMPT_QUIZ_FIELDS = ("quizId", "quiz_id")
_ATTEMPT_STUDENT_ID_FIELDS = ("studentId", "student_id", "student.id")
_ATTEMPT_NAME_FIELDS = ("student.fullName", "studentName", "student_name")
_ATTEMPT_DOB_FIELDS = (
    "student.dateOfBirth",
    "dateOfBirth",
    "studentDateOfBirth",
    "student_date_of_birth",
)
_ATTEMPT_CLASS_FIELDS = ("student.className", "studentClassName", "className", "class_name")
_ATTEMPT_STARTED_FIELDS = ("startedAt", "start_at", "startAt", "createdAt")
_ATTEMPT_FINISHED_FIELDS = ("finishedAt", "end_at", "endAt")

_ANSWER_ATTEMPT_FIELDS = ("attemptId", "attempt_id")
_ANSWER_QUESTION_FIELDS = ("questionId", "question_id")
_ANSWER_OPTION_ID_FIELDS = ("selectedOptionId", "selected_option_id", "optionId")
_ANSWER_TOKEN_FIELDS = ("selected_option", "selectedOption")
_ANSWER_CORRECT_FIELDS = ("isCorrect", "is_correct")
_ANSWER_TIME_SPENT_FIELDS = ("time_spent", "timeSpent")
_ANSWER_CREATED_FIELDS = ("createdAt", "created_at")


def ensure_list(payload: Any) -> list:
    """Return the list carried by ``payload``, unwrapping a ``data`` field.

    Anything that is neither a list nor an object with a list under
    ``data`` yields an empty list.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        data = payload.get("data")
        if isinstance(data, list):
            return data
    return []


def normalize_quiz(payload: Any) -> Quiz:
    raw = _as_dict(payload)
    quiz_id = _to_int(raw.get("id"), default=0)
    questions = normalize_questions(raw.get("questions"))

    duration = _to_int(_first_present(raw, _QUIZ_DURATION_FIELDS), default=DEFAULT_DURATION_MINUTES)
    if duration <= 0:
        duration = DEFAULT_DURATION_MINUTES

    return Quiz(
        id=quiz_id,
        title=_first_text(raw, _QUIZ_TITLE_FIELDS, default=f"Quiz {quiz_id}"),
        duration_minutes=duration,
        questions=questions,
        status=_to_enum(QuizStatus, raw.get("status"), QuizStatus.DRAFT),
        description=_first_text(raw, ("description",), default=None),
        question_count=_to_int(
            _first_present(raw, _QUIZ_QUESTION_COUNT_FIELDS), default=len(questions)
        ),
    )


def normalize_quizzes(payload: Any) -> list[Quiz]:
    return [normalize_quiz(item) for item in ensure_list(payload)]


def normalize_question(payload: Any) -> QuizQuestion:
    raw = _as_dict(payload)
    question_id = _to_int(raw.get("id"), default=0)
    options = [normalize_option(option, index) for index, option in enumerate(ensure_list(raw.get("options")))]
    return QuizQuestion(
        id=question_id,
        content=_first_text(raw, _QUESTION_PROMPT_FIELDS, default=f"Question {question_id}"),
        kind=_to_question_kind(raw.get("type")),
        options=options,
        points=_to_int(raw.get("points"), default=DEFAULT_QUESTION_POINTS) or DEFAULT_QUESTION_POINTS,
        order=_to_int(raw.get("order"), default=0),
        explanation=_first_text(raw, ("explanation",), default=None),
    )


def normalize_questions(payload: Any) -> list[QuizQuestion]:
    return [normalize_question(item) for item in ensure_list(payload)]


def normalize_option(payload: Any, index: int) -> QuizOption:
    raw = _as_dict(payload)
    value = _first_text(raw, ("value",), default=_letter_for_index(index))
    correct = _first_present(raw, _OPTION_CORRECT_FIELDS)
    return QuizOption(
        id=_to_int(raw.get("id"), default=index),
        label=_first_text(raw, _OPTION_LABEL_FIELDS, default=value),
        value=value,
        is_correct=bool(correct) if correct is not None else False,
        order=_to_int(raw.get("order"), default=index),
    )


def normalize_attempt(payload: Any) -> ServerAttempt:
    raw = _as_dict(payload)
    return ServerAttempt(
        id=_to_int(raw.get("id"), default=0),
        quiz_id=_to_int(_first_present(raw, _ATTEMPT_QUIZ_FIELDS), default=None),
        student_id=_to_int(_first_present(raw, _ATTEMPT_STUDENT_ID_FIELDS), default=None),
        student_name=_first_text(raw, _ATTEMPT_NAME_FIELDS, default=None),
        date_of_birth=_first_text(raw, _ATTEMPT_DOB_FIELDS, default=None),
        class_name=_first_text(raw, _ATTEMPT_CLASS_FIELDS, default=None),
        started_at=parse_timestamp(_first_present(raw, _ATTEMPT_STARTED_FIELDS)),
        finished_at=parse_timestamp(_first_present(raw, _ATTEMPT_FINISHED_FIELDS)),
        score=_to_float(raw.get("score")),
        status=_to_enum(AttemptStatus, raw.get("status"), AttemptStatus.IN_PROGRESS),
    )


def normalize_answer(payload: Any) -> StudentAnswer:
    raw = _as_dict(payload)
    correct = _first_present(raw, _ANSWER_CORRECT_FIELDS)
    return StudentAnswer(
        id=_to_int(raw.get("id"), default=None),
        attempt_id=_to_int(_first_present(raw, _ANSWER_ATTEMPT_FIELDS), default=None),
        question_id=_to_int(_first_present(raw, _ANSWER_QUESTION_FIELDS), default=None),
        selected_option_id=_to_int(_first_present(raw, _ANSWER_OPTION_ID_FIELDS), default=None),
        selected_option=_first_text(raw, _ANSWER_TOKEN_FIELDS, default=None),
        is_correct=bool(correct) if correct is not None else None,
        time_spent=_to_float(_first_present(raw, _ANSWER_TIME_SPENT_FIELDS)),
        created_at=parse_timestamp(_first_present(raw, _ANSWER_CREATED_FIELDS)),
    )


def normalize_page(payload: Any, item_normalizer: Callable[[Any], Any]) -> Page:
    """Normalize a ``{data: [...], meta: {...}}`` envelope or a bare list."""
    items = [item_normalizer(item) for item in ensure_list(payload)]
    raw_meta = payload.get("meta") if isinstance(payload, dict) else None
    if not isinstance(raw_meta, dict):
        return Page(
            items=items,
            meta=PaginationMeta(total=len(items), page=1, limit=len(items), total_pages=1),
        )
    return Page(
        items=items,
        meta=PaginationMeta(
            total=_to_int(raw_meta.get("total"), default=len(items)),
            page=_to_int(raw_meta.get("page"), default=1),
            limit=_to_int(raw_meta.get("limit"), default=len(items)),
            total_pages=_to_int(_first_present(raw_meta, ("totalPages", "total_pages")), default=None),
        ),
    )


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _as_dict(payload: Any) -> dict:
    return payload if isinstance(payload, dict) else {}


def _lookup(raw: dict, path: str) -> Any:
    current: Any = raw
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def _first_present(raw: dict, candidates: Iterable[str]) -> Any:
    for candidate in candidates:
        value = _lookup(raw, candidate)
        if value is not None:
            return value
    return None


def _first_text(raw: dict, candidates: Iterable[str], default: str | None) -> str | None:
    for candidate in candidates:
        value = _lookup(raw, candidate)
        if value is None or isinstance(value, (dict, list)):
            continue
        text = str(value)
        if text.strip():
            return text
    return default


def _to_int(value: Any, default: int | None) -> int | None:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_enum(enum_type, value: Any, default):
    if isinstance(value, str):
        try:
            return enum_type(value)
        except ValueError:
            pass
        for member in enum_type:
            if member.value.lower() == value.strip().lower():
                return member
    return default


def _to_question_kind(value: Any) -> QuestionKind:
    if isinstance(value, str):
        value = value.strip().upper().replace("-", "_")
    return _to_enum(QuestionKind, value, QuestionKind.SINGLE_CHOICE)


def _letter_for_index(index: int) -> str:
    return chr(ord("A") + index) if 0 <= index < 26 else str(index)
