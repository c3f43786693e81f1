"""FastAPI server emulating the quiz backend for local development.

It serves the endpoints the client consumes over in-memory state, with
the same quirks as the production backend: quiz payloads come without
their questions, option correctness uses both ``is_correct`` and
``isCorrect``, and single records are wrapped in a
``{data, message, status}`` envelope while listings are paginated as
``{data, meta}``. Correctness and scores are computed here, never on the
client.
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
import math
from threading import Lock, Thread

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
import uvicorn

from quiz_client.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from quiz_client.constants.network_constants import DEV_API_PREFIX, DEV_SERVER_HOST, DEV_SERVER_PORT

_DEFAULT_PAGE_LIMIT = 10


class StartAttemptBody(BaseModel):
    """Payload schema for starting an attempt."""

    model_config = ConfigDict(populate_by_name=True)

    quiz_id: int = Field(alias="quizId")
    student_name: str = Field(alias="studentName", min_length=1)
    date_of_birth: str | None = Field(default=None, alias="dateOfBirth")
    class_name: str | None = Field(default=None, alias="className")


class SubmitAnswerBody(BaseModel):
    """Payload schema for a single selected option."""

    model_config = ConfigDict(populate_by_name=True)

    attempt_id: int = Field(alias="attemptId")
    question_id: int = Field(alias="questionId")
    selected_option_id: int = Field(alias="selectedOptionId")


def sample_quizzes() -> list[dict]:
    return [
        {
            "id": 1,
            "title": "Python basics",
            "description": "Warm-up quiz on core Python syntax.",
            "status": "PUBLISHED",
            "timeLimit": 10,
            "questions": [
                {
                    "id": 11,
                    "content": "Which keyword defines a function?",
                    "type": "SINGLE_CHOICE",
                    "points": 1,
                    "order": 1,
                    "options": [
                        {"id": 111, "content": "func", "value": "A", "is_correct": False},
                        {"id": 112, "content": "def", "value": "B", "is_correct": True},
                        {"id": 113, "content": "lambda", "value": "C", "is_correct": False},
                    ],
                    "explanation": "`def` starts a function definition.",
                },
                {
                    "id": 12,
                    "content": "Which of these are immutable?",
                    "type": "MULTIPLE_CHOICE",
                    "points": 2,
                    "order": 2,
                    "options": [
                        {"id": 121, "label": "tuple", "value": "A", "isCorrect": True},
                        {"id": 122, "label": "list", "value": "B", "isCorrect": False},
                        {"id": 123, "label": "str", "value": "C", "isCorrect": True},
                    ],
                },
                {
                    "id": 13,
                    "question": "`None` is falsy.",
                    "type": "TRUE_FALSE",
                    "order": 3,
                    "options": [
                        {"id": 131, "content": "True", "value": "TRUE", "is_correct": True},
                        {"id": 132, "content": "False", "value": "FALSE", "is_correct": False},
                    ],
                },
            ],
        },
        {
            "id": 2,
            "title": "Draft quiz",
            "status": "DRAFT",
            "timeLimit": 30,
            "questions": [],
        },
    ]


class DevQuizBackend:
    """In-memory quizzes, attempts and answers shared by the API handlers."""

    def __init__(self, quizzes: list[dict] | None = None) -> None:
        self._lock = Lock()
        source = quizzes if quizzes is not None else sample_quizzes()
        self._quizzes: dict[int, dict] = {quiz["id"]: copy.deepcopy(quiz) for quiz in source}
        self._attempts: dict[int, dict] = {}
        self._answers: dict[int, list[dict]] = {}
        self._attempt_counter = 0
        self._answer_counter = 0

    def list_quizzes(self, keyword: str | None = None) -> list[dict]:
        with self._lock:
            quizzes = [self._quiz_summary(quiz) for quiz in self._quizzes.values()]
        if keyword:
            needle = keyword.lower()
            quizzes = [quiz for quiz in quizzes if needle in quiz["title"].lower()]
        return quizzes

    def get_quiz(self, quiz_id: int) -> dict | None:
        with self._lock:
            quiz = self._quizzes.get(quiz_id)
            return self._quiz_summary(quiz) if quiz else None

    def get_questions(self, quiz_id: int) -> list[dict] | None:
        with self._lock:
            quiz = self._quizzes.get(quiz_id)
            return copy.deepcopy(quiz["questions"]) if quiz else None

    def start_attempt(self, body: StartAttemptBody) -> dict:
        with self._lock:
            if body.quiz_id not in self._quizzes:
                raise LookupError(f"Quiz {body.quiz_id} not found")
            self._attempt_counter += 1
            attempt = {
                "id": self._attempt_counter,
                "quizId": body.quiz_id,
                "student_name": body.student_name,
                "dateOfBirth": body.date_of_birth,
                "studentClassName": body.class_name,
                "start_at": _now_iso(),
                "end_at": None,
                "score": 0,
                "status": "in_progress",
            }
            self._attempts[attempt["id"]] = attempt
            self._answers[attempt["id"]] = []
            return dict(attempt)

    def submit_answer(self, body: SubmitAnswerBody) -> dict:
        with self._lock:
            attempt = self._attempts.get(body.attempt_id)
            if attempt is None:
                raise LookupError(f"Attempt {body.attempt_id} not found")
            question = self._find_question(attempt["quizId"], body.question_id)
            if question is None:
                raise LookupError(f"Question {body.question_id} not found")
            option = next((opt for opt in question["options"] if opt["id"] == body.selected_option_id), None)
            if option is None:
                raise ValueError(f"Option {body.selected_option_id} does not belong to question {body.question_id}")

            answers = self._answers[body.attempt_id]
            existing = next(
                (
                    answer
                    for answer in answers
                    if answer["questionId"] == body.question_id
                    and answer["selectedOptionId"] == body.selected_option_id
                ),
                None,
            )
            if existing is not None:
                return dict(existing)

            if not _is_multi_select(question):
                # A single-choice question keeps only the latest selection
                answers[:] = [answer for answer in answers if answer["questionId"] != body.question_id]

            self._answer_counter += 1
            answer = {
                "id": self._answer_counter,
                "attemptId": body.attempt_id,
                "questionId": body.question_id,
                "selectedOptionId": body.selected_option_id,
                "selected_option": option.get("value"),
                "is_correct": _option_is_correct(option),
                "createdAt": _now_iso(),
            }
            answers.append(answer)
            attempt["score"] = self._score(attempt)
            attempt["status"] = "completed"
            attempt["end_at"] = _now_iso()
            return dict(answer)

    def list_attempts(self, quiz_id: int, keyword: str | None = None) -> list[dict]:
        with self._lock:
            attempts = [dict(a) for a in self._attempts.values() if a["quizId"] == quiz_id]
        if keyword:
            needle = keyword.lower()
            attempts = [a for a in attempts if needle in (a.get("student_name") or "").lower()]
        return attempts

    def get_attempt(self, attempt_id: int) -> dict | None:
        with self._lock:
            attempt = self._attempts.get(attempt_id)
            return dict(attempt) if attempt else None

    def list_answers(self, attempt_id: int) -> list[dict] | None:
        with self._lock:
            answers = self._answers.get(attempt_id)
            return [dict(answer) for answer in answers] if answers is not None else None

    def _find_question(self, quiz_id: int, question_id: int) -> dict | None:
        quiz = self._quizzes.get(quiz_id)
        if quiz is None:
            return None
        return next((q for q in quiz["questions"] if q["id"] == question_id), None)

    def _score(self, attempt: dict) -> int:
        selected: dict[int, set[int]] = {}
        for answer in self._answers[attempt["id"]]:
            selected.setdefault(answer["questionId"], set()).add(answer["selectedOptionId"])
        total = 0
        for question in self._quizzes[attempt["quizId"]]["questions"]:
            correct = {opt["id"] for opt in question["options"] if _option_is_correct(opt)}
            if correct and selected.get(question["id"]) == correct:
                total += question.get("points") or 1
        return total

    @staticmethod
    def _quiz_summary(quiz: dict) -> dict:
        summary = {key: value for key, value in quiz.items() if key != "questions"}
        summary["number_of_questions"] = len(quiz.get("questions") or [])
        return copy.deepcopy(summary)


def create_dev_api_app(backend: DevQuizBackend | None = None, prefix: str = DEV_API_PREFIX) -> FastAPI:
    """Create a FastAPI application serving the provided backend state."""
    backend = backend if backend is not None else DevQuizBackend()
    app = FastAPI(
        title=f"{APP_NAME} development API",
        version=APP_VERSION,
        description=APP_ABOUT_TEXT,
        license_info={"name": APP_LICENSE},
    )
    router = APIRouter()

    @app.exception_handler(HTTPException)
    async def _http_error(_request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.detail, "statusCode": exc.status_code},
        )

    @router.get("/quizzes")
    def list_quizzes(page: int = 1, limit: int = _DEFAULT_PAGE_LIMIT, keyword: str | None = None) -> dict:
        return _paginate(backend.list_quizzes(keyword), page, limit)

    @router.get("/quizzes/{quiz_id}")
    def get_quiz(quiz_id: int) -> dict:
        quiz = backend.get_quiz(quiz_id)
        if quiz is None:
            raise HTTPException(status_code=404, detail="Quiz not found")
        return _envelope(quiz)

    @router.get("/quiz/{quiz_id}/questions")
    def get_questions(quiz_id: int) -> dict:
        questions = backend.get_questions(quiz_id)
        if questions is None:
            raise HTTPException(status_code=404, detail="Quiz not found")
        return _envelope(questions)

    @router.post("/quiz_attempts", status_code=201)
    def start_attempt(body: StartAttemptBody) -> dict:
        try:
            attempt = backend.start_attempt(body)
        except LookupError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return _envelope(attempt, status=201)

    @router.post("/submit_answer", status_code=201)
    def submit_answer(body: SubmitAnswerBody) -> dict:
        try:
            answer = backend.submit_answer(body)
        except LookupError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _envelope(answer, status=201)

    @router.get("/quiz_attempts_by_quiz_id/{quiz_id}")
    def list_attempts(
        quiz_id: int, page: int = 1, limit: int = _DEFAULT_PAGE_LIMIT, keyword: str | None = None
    ) -> dict:
        return _paginate(backend.list_attempts(quiz_id, keyword), page, limit)

    @router.get("/quiz_attempts/{attempt_id}")
    def get_attempt(attempt_id: int) -> dict:
        attempt = backend.get_attempt(attempt_id)
        if attempt is None:
            raise HTTPException(status_code=404, detail="Attempt not found")
        return _envelope(attempt)

    @router.get("/student_answers/{attempt_id}")
    def list_answers(attempt_id: int, page: int = 1, limit: int = _DEFAULT_PAGE_LIMIT) -> dict:
        answers = backend.list_answers(attempt_id)
        if answers is None:
            raise HTTPException(status_code=404, detail="Attempt not found")
        return _paginate(answers, page, limit)

    app.include_router(router, prefix=prefix)
    return app


def start_dev_api_server(
    backend: DevQuizBackend | None = None,
    host: str = DEV_SERVER_HOST,
    port: int = DEV_SERVER_PORT,
) -> Thread:
    """Start the development API in a background daemon thread."""
    app = create_dev_api_app(backend)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    thread = Thread(target=server.run, name="DevQuizApiServer", daemon=True)
    thread.start()
    return thread


def _envelope(data: object, message: str = "OK", status: int = 200) -> dict:
    return {"data": data, "message": message, "status": status}


def _paginate(items: list[dict], page: int, limit: int) -> dict:
    page = max(1, page)
    limit = max(1, limit)
    start = (page - 1) * limit
    return {
        "data": items[start:start + limit],
        "meta": {
            "total": len(items),
            "page": page,
            "limit": limit,
            "totalPages": max(1, math.ceil(len(items) / limit)),
        },
    }


def _option_is_correct(option: dict) -> bool:
    flag = option.get("isCorrect")
    if flag is None:
        flag = option.get("is_correct")
    return bool(flag)


def _is_multi_select(question: dict) -> bool:
    return str(question.get("type") or "").upper() == "MULTIPLE_CHOICE"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
