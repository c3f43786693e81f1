"""Facade wiring the client services to one configuration."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from weakref import WeakSet

import httpx

from quiz_client.core.key_value_store import InMemoryKeyValueStore, JsonFileKeyValueStore, KeyValueStore
from quiz_client.core.models import Page, Quiz, QuizStatus, StudentIdentity
from quiz_client.core.remote_gateway import QuizApiClient
from quiz_client.core.services.attempt_review import ANSWERS_PAGE_LIMIT, AttemptReview, load_attempt_review
from quiz_client.core.services.attempt_session import AttemptSession
from quiz_client.core.services.countdown import utc_now
from quiz_client.core.services.local_attempt_store import LocalAttemptStore
from quiz_client.core.services.student_identity_store import StudentIdentityStore
from quiz_client.utils.settings import ClientSettings


class QuizManager:
    """Facade for client services: API gateway, local stores and attempt sessions."""

    def __init__(
        self,
        settings: ClientSettings,
        durable_store: KeyValueStore | None = None,
        session_store: KeyValueStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._settings = settings
        self._clock = clock
        self._gateway = QuizApiClient(
            settings.api_base_url,
            access_token=settings.access_token,
            timeout=settings.request_timeout_seconds,
            transport=transport,
        )
        self._attempts = LocalAttemptStore(
            durable_store if durable_store is not None else JsonFileKeyValueStore(settings.storage_path),
            settings.local_attempts_key,
        )
        self._identity = StudentIdentityStore(
            session_store if session_store is not None else InMemoryKeyValueStore(),
            settings.student_info_key,
        )
        self._sessions: WeakSet[AttemptSession] = WeakSet()

    async def __aenter__(self) -> "QuizManager":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Let in-flight answer submissions settle, then close the gateway."""
        for session in list(self._sessions):
            await session.drain_background()
        await self._gateway.aclose()

    @property
    def gateway(self) -> QuizApiClient:
        return self._gateway

    @property
    def attempt_store(self) -> LocalAttemptStore:
        return self._attempts

    # --- Student identity ---

    def register_student(
        self, name: str, date_of_birth: str | None = None, class_name: str | None = None
    ) -> StudentIdentity:
        return self._identity.save_identity(
            StudentIdentity(name=name, date_of_birth=date_of_birth, class_name=class_name)
        )

    def current_student(self) -> StudentIdentity | None:
        return self._identity.get_identity()

    def forget_student(self) -> None:
        self._identity.clear_identity()

    # --- Quizzes and attempts ---

    async def list_quizzes(
        self, keyword: str | None = None, published_only: bool = True
    ) -> list[Quiz]:
        quizzes = await self._gateway.list_quizzes(keyword=keyword)
        if published_only:
            quizzes = [quiz for quiz in quizzes if quiz.status is QuizStatus.PUBLISHED]
        return quizzes

    def new_session(self) -> AttemptSession:
        session = AttemptSession(self._gateway, self._attempts, self._identity, clock=self._clock)
        self._sessions.add(session)
        return session

    async def open_session(self, quiz_id: int) -> AttemptSession:
        """Return a session with the quiz loaded and its local attempt in place."""
        session = self.new_session()
        await session.load(quiz_id)
        return session

    # --- Attempt review ---

    async def list_attempts(
        self, quiz_id: int, page: int = 1, limit: int = ANSWERS_PAGE_LIMIT, keyword: str | None = None
    ) -> Page:
        return await self._gateway.list_attempts_by_quiz(quiz_id, page=page, limit=limit, keyword=keyword)

    async def review_attempt(
        self, quiz_id: int, attempt_id: int, page: int = 1, limit: int = ANSWERS_PAGE_LIMIT
    ) -> AttemptReview:
        return await load_attempt_review(self._gateway, quiz_id, attempt_id, page=page, limit=limit)
