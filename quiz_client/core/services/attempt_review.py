"""Service assembling the instructor-facing review of a submitted attempt."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import logging

from quiz_client.core.models import Page, PaginationMeta, QuizQuestion, ServerAttempt, StudentAnswer
from quiz_client.core.remote_gateway import ApiError, QuizApiClient

logger = logging.getLogger(__name__)

ANSWERS_PAGE_LIMIT: int = 25


@dataclass(slots=True)
class QuestionReview:
    question_id: int
    prompt: str
    option_labels: dict[int, str]
    correct_option_ids: list[int]
    selected_option_ids: list[int] = field(default_factory=list)
    is_correct: bool | None = None  # None when unanswered or not gradable
    points: int = 1
    explanation: str | None = None

    @property
    def selected_labels(self) -> list[str]:
        return [self.option_labels.get(option_id, f"Option {option_id}") for option_id in self.selected_option_ids]

    @property
    def answered(self) -> bool:
        return bool(self.selected_option_ids)


@dataclass(slots=True)
class AttemptReview:
    attempt: ServerAttempt
    quiz_title: str
    questions: list[QuestionReview]
    answers_meta: PaginationMeta

    @property
    def student_name(self) -> str:
        return self.attempt.display_name

    @property
    def date_of_birth(self) -> str | None:
        return self.attempt.date_of_birth

    @property
    def class_name(self) -> str | None:
        return self.attempt.class_name

    @property
    def score(self) -> float | None:
        return self.attempt.score

    @property
    def started_at(self) -> datetime | None:
        return self.attempt.started_at

    @property
    def correct_count(self) -> int:
        return sum(1 for question in self.questions if question.is_correct)


def build_attempt_review(
    quiz_title: str,
    questions: list[QuizQuestion],
    attempt: ServerAttempt,
    answers_page: Page,
) -> AttemptReview:
    answers_by_question: dict[int, list[StudentAnswer]] = {}
    for answer in answers_page.items:
        if answer.question_id is not None:
            answers_by_question.setdefault(answer.question_id, []).append(answer)

    reviews = [
        _review_question(question, answers_by_question.get(question.id, []))
        for question in sorted(questions, key=lambda q: q.order)
    ]
    return AttemptReview(
        attempt=attempt,
        quiz_title=quiz_title,
        questions=reviews,
        answers_meta=answers_page.meta,
    )


async def load_attempt_review(
    gateway: QuizApiClient,
    quiz_id: int,
    attempt_id: int,
    page: int = 1,
    limit: int = ANSWERS_PAGE_LIMIT,
) -> AttemptReview:
    """Fetch everything a review needs; quiz and attempt failures propagate."""
    quiz = await gateway.get_quiz(quiz_id)
    attempt = await gateway.get_attempt(attempt_id)
    questions = quiz.questions
    if not questions:
        try:
            questions = await gateway.get_questions(quiz_id)
        except ApiError as exc:
            logger.warning("Could not fetch questions for quiz %s: %s", quiz_id, exc)
            questions = []
    answers_page = await gateway.list_answers_by_attempt(attempt_id, page=page, limit=limit)
    return build_attempt_review(quiz.title, questions, attempt, answers_page)


def _review_question(question: QuizQuestion, answers: list[StudentAnswer]) -> QuestionReview:
    option_labels = {option.id: option.label for option in question.options}
    correct_ids = question.correct_option_ids()

    selected_ids: list[int] = []
    for answer in answers:
        option_id = answer.selected_option_id
        if option_id is None and answer.selected_option is not None:
            option = question.find_option_by_value(answer.selected_option)
            option_id = option.id if option else None
        if option_id is not None and option_id not in selected_ids:
            selected_ids.append(option_id)

    return QuestionReview(
        question_id=question.id,
        prompt=question.content,
        option_labels=option_labels,
        correct_option_ids=correct_ids,
        selected_option_ids=selected_ids,
        is_correct=_grade(question, answers, selected_ids, correct_ids),
        points=question.points,
        explanation=question.explanation,
    )


def _grade(
    question: QuizQuestion,
    answers: list[StudentAnswer],
    selected_ids: list[int],
    correct_ids: list[int],
) -> bool | None:
    if not selected_ids:
        return None
    echoed = [answer.is_correct for answer in answers]
    if echoed and all(flag is not None for flag in echoed):
        if not all(echoed):
            return False
        if question.is_multi_select and correct_ids:
            return set(selected_ids) == set(correct_ids)
        return True
    if not correct_ids:
        return None
    if question.is_multi_select:
        return set(selected_ids) == set(correct_ids)
    return selected_ids[-1] in correct_ids
