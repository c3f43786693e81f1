import asyncio

from quiz_client.core.models import (
    Page,
    PaginationMeta,
    QuestionKind,
    QuizOption,
    QuizQuestion,
    ServerAttempt,
    StudentAnswer,
)
from quiz_client.core.services.attempt_review import build_attempt_review


def _questions():
    return [
        QuizQuestion(
            id=2,
            content="Pick the primes",
            kind=QuestionKind.MULTIPLE_CHOICE,
            order=2,
            options=[
                QuizOption(id=20, label="2", value="A", is_correct=True),
                QuizOption(id=21, label="4", value="B"),
                QuizOption(id=22, label="5", value="C", is_correct=True),
            ],
        ),
        QuizQuestion(
            id=1,
            content="2 + 2?",
            order=1,
            options=[
                QuizOption(id=10, label="3", value="A"),
                QuizOption(id=11, label="4", value="B", is_correct=True),
            ],
        ),
        QuizQuestion(id=3, content="Unanswered", order=3, options=[QuizOption(id=30, label="x", value="A")]),
    ]


def _page(answers):
    return Page(items=answers, meta=PaginationMeta(total=len(answers), page=1, limit=25, total_pages=1))


def test_review_lists_questions_in_order_with_selected_labels():
    answers = [
        StudentAnswer(id=1, attempt_id=9, question_id=1, selected_option_id=11),
        StudentAnswer(id=2, attempt_id=9, question_id=2, selected_option_id=20),
        StudentAnswer(id=3, attempt_id=9, question_id=2, selected_option="C"),
    ]

    review = build_attempt_review("Maths", _questions(), ServerAttempt(id=9, student_id=4), _page(answers))

    assert [question.question_id for question in review.questions] == [1, 2, 3]
    first, second, third = review.questions
    assert first.selected_labels == ["4"]
    assert second.selected_option_ids == [20, 22]
    assert (first.is_correct, second.is_correct, third.is_correct) == (True, True, None)
    assert not third.answered
    assert review.correct_count == 2
    assert review.student_name == "HS-4"


def test_server_correctness_flags_take_precedence():
    answers = [
        StudentAnswer(id=1, attempt_id=9, question_id=1, selected_option_id=11, is_correct=False),
        StudentAnswer(id=2, attempt_id=9, question_id=2, selected_option_id=20, is_correct=True),
    ]

    review = build_attempt_review("Maths", _questions(), ServerAttempt(id=9), _page(answers))

    first, second, _ = review.questions
    assert first.is_correct is False
    assert second.is_correct is False


def test_review_of_submitted_attempt_from_the_server(harness):
    async def scenario():
        async with harness.manager() as manager:
            manager.register_student("An Nguyen", "2010-04-02", "9A")
            session = await manager.open_session(1)
            session.select_answer(11, "B")
            session.select_answer(12, "A")
            session.select_answer(13, "FALSE")
            report = await session.submit()

            attempts = await manager.list_attempts(1)
            assert [attempt.id for attempt in attempts.items] == [report.server_attempt_id]
            return await manager.review_attempt(1, report.server_attempt_id)

    review = asyncio.run(scenario())

    assert review.quiz_title == "Python basics"
    assert (review.student_name, review.date_of_birth, review.class_name) == ("An Nguyen", "2010-04-02", "9A")
    assert [question.is_correct for question in review.questions] == [True, False, False]
    assert review.score == 1
    assert review.answers_meta.total == 3
