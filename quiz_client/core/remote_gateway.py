"""Async HTTP client for the quiz, attempt and answer endpoints.

Every call is made once. Failures surface as :class:`ApiError` and are
left to the caller to absorb or report; responses are normalized here so
callers only ever see the canonical models.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from quiz_client.constants.network_constants import DEFAULT_REQUEST_TIMEOUT_SECONDS
from quiz_client.core.models import Page, Quiz, QuizQuestion, ServerAttempt, StudentAnswer, StudentIdentity
from quiz_client.core.normalizers import (
    normalize_answer,
    normalize_attempt,
    normalize_page,
    normalize_questions,
    normalize_quiz,
    normalize_quizzes,
)

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Raised when a request fails in transport or returns a non-2xx status."""

    def __init__(self, message: str, status: int | None = None, payload: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.payload = payload


class StartAttemptPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    quiz_id: int = Field(alias="quizId")
    student_name: str = Field(alias="studentName", min_length=1)
    date_of_birth: str | None = Field(default=None, alias="dateOfBirth")
    class_name: str | None = Field(default=None, alias="className")


class SubmitAnswerPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    attempt_id: int = Field(alias="attemptId")
    question_id: int = Field(alias="questionId")
    selected_option_id: int = Field(alias="selectedOptionId")


class QuizApiClient:
    """Thin request/response wrapper around ``httpx.AsyncClient``."""

    def __init__(
        self,
        base_url: str,
        access_token: str | None = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "QuizApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # --- Quizzes ---

    async def list_quizzes(
        self, page: int | None = None, limit: int | None = None, keyword: str | None = None
    ) -> list[Quiz]:
        payload = await self._request(
            "GET", "/quizzes", params=_query(page=page, limit=limit, keyword=keyword)
        )
        return normalize_quizzes(payload)

    async def get_quiz(self, quiz_id: int) -> Quiz:
        return normalize_quiz(await self._request("GET", f"/quizzes/{quiz_id}"))

    async def get_questions(self, quiz_id: int) -> list[QuizQuestion]:
        return normalize_questions(await self._request("GET", f"/quiz/{quiz_id}/questions"))

    # --- Attempts and answers ---

    async def start_attempt(self, quiz_id: int, student: StudentIdentity) -> ServerAttempt:
        body = StartAttemptPayload(
            quiz_id=quiz_id,
            student_name=student.name,
            date_of_birth=student.date_of_birth,
            class_name=student.class_name,
        )
        payload = await self._request(
            "POST", "/quiz_attempts", json=body.model_dump(by_alias=True, exclude_none=True)
        )
        return normalize_attempt(payload)

    async def submit_answer(self, attempt_id: int, question_id: int, option_id: int) -> StudentAnswer:
        body = SubmitAnswerPayload(
            attempt_id=attempt_id, question_id=question_id, selected_option_id=option_id
        )
        payload = await self._request("POST", "/submit_answer", json=body.model_dump(by_alias=True))
        return normalize_answer(payload)

    async def list_attempts_by_quiz(
        self,
        quiz_id: int,
        page: int | None = None,
        limit: int | None = None,
        keyword: str | None = None,
    ) -> Page:
        payload = await self._request(
            "GET",
            f"/quiz_attempts_by_quiz_id/{quiz_id}",
            params=_query(page=page, limit=limit, keyword=keyword),
        )
        return normalize_page(payload, normalize_attempt)

    async def get_attempt(self, attempt_id: int) -> ServerAttempt:
        return normalize_attempt(await self._request("GET", f"/quiz_attempts/{attempt_id}"))

    async def list_answers_by_attempt(
        self, attempt_id: int, page: int | None = None, limit: int | None = None
    ) -> Page:
        payload = await self._request(
            "GET", f"/student_answers/{attempt_id}", params=_query(page=page, limit=limit)
        )
        return normalize_page(payload, normalize_answer)

    # --- Transport ---

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        if self._client.is_closed:
            logger.warning("API request skipped, client already closed: %s %s", method, endpoint)
            raise ApiError("The quiz server connection has been closed.")
        try:
            response = await self._client.request(method, endpoint, json=json, params=params)
        except httpx.HTTPError as exc:
            logger.error("API request failed: %s %s (%s)", method, endpoint, exc)
            raise ApiError(f"Could not reach the quiz server: {exc}") from exc

        payload = _decode_body(response)
        if response.is_error:
            message = _error_message(payload)
            logger.error(
                "API error: %s %s -> %s %s", method, endpoint, response.status_code, message
            )
            raise ApiError(message, status=response.status_code, payload=payload)
        return _unwrap_envelope(payload)


def _query(**params: object) -> dict[str, str]:
    return {key: str(value) for key, value in params.items() if value is not None}


def _decode_body(response: httpx.Response) -> Any:
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text


def _error_message(payload: Any) -> str:
    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("detail")
        if isinstance(message, str) and message:
            return message
    if isinstance(payload, str) and payload.strip():
        return payload.strip()
    return "Unexpected API error"


def _unwrap_envelope(payload: Any) -> Any:
    """Strip a ``{data, message, status}`` wrapper; keep paginated ``{data, meta}``."""
    if isinstance(payload, dict) and "data" in payload and "meta" not in payload:
        return payload["data"]
    return payload
