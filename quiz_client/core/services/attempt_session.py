"""Service driving one student's attempt at one quiz.

Lifecycle::

    UNLOADED -> LOADING -> ACTIVE -> SUBMITTING -> SUBMITTED
                       \\-> LOAD_FAILED (load may be retried)

Loading resumes the stored local attempt for the quiz when its time has
not run out, replaces it silently when it has, and creates a new one
otherwise. Answers are written locally first. Remote persistence is
best-effort throughout: the server attempt is only created when the
student submits, and no remote failure blocks the submission or the local
cleanup that follows it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
import logging
from uuid import uuid4

from quiz_client.constants.quiz_constants import COUNTDOWN_TICK_INTERVAL_SECONDS, LOCAL_ATTEMPT_TOKEN_PREFIX
from quiz_client.core.models import (
    LocalAttempt,
    Quiz,
    StudentIdentity,
    join_answer_tokens,
    split_answer_tokens,
)
from quiz_client.core.remote_gateway import ApiError, QuizApiClient
from quiz_client.core.services.countdown import Countdown, CountdownSnapshot, CountdownTicker, utc_now
from quiz_client.core.services.local_attempt_store import LocalAttemptStore
from quiz_client.core.services.student_identity_store import StudentIdentityStore

logger = logging.getLogger(__name__)


class SessionState(Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOAD_FAILED = "load_failed"
    ACTIVE = "active"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"


class ResumeOutcome(Enum):
    NEW_ATTEMPT = "new_attempt"
    RESUMED = "resumed"
    EXPIRED_REPLACED = "expired_replaced"


class SessionError(Exception):
    """Raised when an action is not allowed in the session's current state."""


class MissingStudentIdentityError(SessionError):
    """Raised when no student details were entered for this client session."""


@dataclass(slots=True)
class SubmissionReport:
    server_attempt_id: int | None
    submitted: list[tuple[int, int]] = field(default_factory=list)
    failed: list[tuple[int, int]] = field(default_factory=list)
    unresolved: list[tuple[int, str]] = field(default_factory=list)

    @property
    def fully_saved(self) -> bool:
        return self.server_attempt_id is not None and not self.failed and not self.unresolved


def make_attempt_token(now: datetime) -> str:
    return f"{LOCAL_ATTEMPT_TOKEN_PREFIX}{int(now.timestamp() * 1000)}_{uuid4().hex[:8]}"


class AttemptSession:
    """Manages the state of a single quiz attempt on this client."""

    def __init__(
        self,
        gateway: QuizApiClient,
        attempt_store: LocalAttemptStore,
        identity_store: StudentIdentityStore,
        clock: Callable[[], datetime] = utc_now,
        token_factory: Callable[[datetime], str] = make_attempt_token,
    ) -> None:
        self._gateway = gateway
        self._attempt_store = attempt_store
        self._identity_store = identity_store
        self._clock = clock
        self._token_factory = token_factory

        self._state = SessionState.UNLOADED
        self._quiz_id: int | None = None
        self._quiz: Quiz | None = None
        self._attempt: LocalAttempt | None = None
        self._outcome: ResumeOutcome | None = None
        self._countdown = Countdown(clock=clock)
        self._ticker: CountdownTicker | None = None
        self._background: set[asyncio.Task] = set()

    # --- State ---

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def quiz(self) -> Quiz | None:
        return self._quiz

    @property
    def outcome(self) -> ResumeOutcome | None:
        return self._outcome

    @property
    def attempt_id(self) -> str | None:
        return self._attempt.attempt_id if self._attempt else None

    @property
    def server_attempt_id(self) -> int | None:
        return self._attempt.server_attempt_id if self._attempt else None

    @property
    def started_at(self) -> datetime | None:
        return self._attempt.started_at if self._attempt else None

    @property
    def answers(self) -> dict[int, str]:
        return dict(self._attempt.answers) if self._attempt else {}

    @property
    def end_time(self) -> datetime | None:
        if self._attempt is None or self._quiz is None:
            return None
        return self._attempt.started_at + timedelta(minutes=self._quiz.duration_minutes)

    @property
    def countdown(self) -> Countdown:
        return self._countdown

    def countdown_snapshot(self) -> CountdownSnapshot:
        return self._countdown.snapshot()

    def is_expired(self) -> bool:
        return self._countdown.is_expired()

    def start_ticker(
        self,
        on_tick: Callable[[CountdownSnapshot], None],
        on_expired: Callable[[], None] | None = None,
        interval_seconds: float = COUNTDOWN_TICK_INTERVAL_SECONDS,
    ) -> CountdownTicker:
        """Tick the attempt's countdown until it expires, the quiz is submitted or reloaded."""
        self._require_active()
        self.stop_ticker()
        self._ticker = CountdownTicker(self._countdown, on_tick, on_expired, interval_seconds)
        self._ticker.start(self.end_time)
        return self._ticker

    def stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.stop()
            self._ticker = None

    def has_answers(self) -> bool:
        return any(answer for answer in self.answers.values())

    def selected_tokens(self, question_id: int) -> list[str]:
        return split_answer_tokens(self.answers.get(question_id))

    # --- Loading ---

    async def load(self, quiz_id: int) -> ResumeOutcome:
        """Fetch the quiz and resume, replace or create the local attempt."""
        if self._state in (SessionState.LOADING, SessionState.SUBMITTING):
            raise SessionError(f"Cannot load a quiz while {self._state.value}.")

        student = self._identity_store.get_identity()
        if student is None:
            raise MissingStudentIdentityError("Student details are required before starting a quiz.")

        self.stop_ticker()
        self._state = SessionState.LOADING
        try:
            quiz = await self._gateway.get_quiz(quiz_id)
        except ApiError:
            self._state = SessionState.LOAD_FAILED
            raise

        if not quiz.questions:
            try:
                quiz.questions = await self._gateway.get_questions(quiz_id)
            except ApiError as exc:
                logger.error("Could not fetch questions for quiz %s: %s", quiz_id, exc)
        if not quiz.id:
            quiz.id = quiz_id

        self._quiz_id = quiz_id
        self._quiz = quiz
        self._outcome = self._resume_or_create(quiz_id, quiz, student)
        self._countdown.set_end_time(self.end_time)
        self._state = SessionState.ACTIVE
        logger.info(
            "Quiz %s ready (%s), attempt %s", quiz_id, self._outcome.value, self._attempt.attempt_id
        )
        return self._outcome

    def _resume_or_create(self, quiz_id: int, quiz: Quiz, student: StudentIdentity) -> ResumeOutcome:
        now = self._clock()
        existing = self._attempt_store.find_by_quiz(quiz_id)
        outcome = ResumeOutcome.NEW_ATTEMPT
        if existing is not None:
            if now < existing.started_at + timedelta(minutes=quiz.duration_minutes):
                self._attempt = existing
                return ResumeOutcome.RESUMED
            logger.info("Local attempt %s for quiz %s ran out of time; starting over", existing.attempt_id, quiz_id)
            self._attempt_store.remove_by_quiz(quiz_id)
            outcome = ResumeOutcome.EXPIRED_REPLACED

        attempt = LocalAttempt(
            attempt_id=self._token_factory(now),
            quiz_id=quiz_id,
            student=student,
            started_at=now,
        )
        self._attempt_store.save_attempt(attempt)
        self._attempt = attempt
        return outcome

    # --- Answer capture ---

    def select_answer(self, question_id: int, option_value: str) -> str:
        """Record a selection and return the question's stored answer.

        Single-choice and true/false selections replace the previous answer;
        multiple-choice selections toggle the token in the answer set.
        """
        self._require_active()
        if self._countdown.is_expired():
            raise SessionError("Time is up; answers can no longer be changed.")
        question = self._quiz.find_question(question_id)
        if question is None:
            raise SessionError(f"Question {question_id} is not part of this quiz.")
        option = question.find_option_by_value(option_value)
        if option is None and question.options:
            raise SessionError(f"'{option_value}' is not an option of question {question_id}.")

        selected = True
        if question.is_multi_select:
            tokens = split_answer_tokens(self._attempt.answers.get(question_id))
            if option_value in tokens:
                tokens = [token for token in tokens if token != option_value]
                selected = False
            else:
                tokens.append(option_value)
            answer = join_answer_tokens(tokens)
        else:
            answer = option_value

        self._attempt.answers[question_id] = answer
        self._attempt_store.update_answer(self._attempt.attempt_id, question_id, answer)

        server_attempt_id = self._attempt.server_attempt_id
        if selected and option is not None and server_attempt_id is not None:
            self._dispatch_background_submit(server_attempt_id, question_id, option.id)
        return answer

    def _dispatch_background_submit(self, server_attempt_id: int, question_id: int, option_id: int) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No event loop running; answer to question %s kept locally only", question_id)
            return
        task = loop.create_task(self._submit_quietly(server_attempt_id, question_id, option_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def drain_background(self) -> None:
        """Wait for opportunistic answer submissions already in flight."""
        if self._background:
            await asyncio.gather(*list(self._background))

    # --- Submission ---

    def can_submit(self) -> bool:
        if self._state is not SessionState.ACTIVE:
            return False
        return self.has_answers() or not self._countdown.is_expired()

    async def submit(self) -> SubmissionReport:
        """Send every recorded answer and discard the local attempt.

        The local attempt is removed once all submissions have settled,
        whatever their outcome, so the quiz can be retaken straight away.
        """
        self._require_active()
        if self._countdown.is_expired() and not self.has_answers():
            raise SessionError("Time is up and no answers were recorded; there is nothing to submit.")

        self._state = SessionState.SUBMITTING
        attempt = self._attempt
        pairs, unresolved = self._resolve_submission_pairs(attempt)
        report = SubmissionReport(server_attempt_id=attempt.server_attempt_id, unresolved=unresolved)
        try:
            if report.server_attempt_id is None:
                report.server_attempt_id = await self._create_server_attempt(attempt)

            if report.server_attempt_id is None:
                logger.warning("Quiz %s submitted without a server attempt; answers were not saved remotely", self._quiz_id)
            else:
                results = await asyncio.gather(
                    *(self._submit_quietly(report.server_attempt_id, q_id, o_id) for q_id, o_id in pairs)
                )
                for pair, saved in zip(pairs, results):
                    (report.submitted if saved else report.failed).append(pair)
        finally:
            self._attempt_store.remove_by_quiz(self._quiz_id)
            self.stop_ticker()
            self._countdown.set_end_time(None)
            self._state = SessionState.SUBMITTED

        logger.info(
            "Quiz %s submitted: %d answer(s) saved, %d failed",
            self._quiz_id,
            len(report.submitted),
            len(report.failed),
        )
        return report

    def _resolve_submission_pairs(self, attempt: LocalAttempt) -> tuple[list[tuple[int, int]], list[tuple[int, str]]]:
        pairs: list[tuple[int, int]] = []
        unresolved: list[tuple[int, str]] = []
        seen: set[tuple[int, int]] = set()
        for question_id, answer in attempt.answers.items():
            if not answer:
                continue
            question = self._quiz.find_question(question_id)
            if question is None:
                unresolved.append((question_id, answer))
                continue
            tokens = split_answer_tokens(answer) if question.is_multi_select else [answer]
            for token in tokens:
                option = question.find_option_by_value(token)
                if option is None:
                    unresolved.append((question_id, token))
                    continue
                pair = (question_id, option.id)
                if pair not in seen:
                    seen.add(pair)
                    pairs.append(pair)
        return pairs, unresolved

    async def _create_server_attempt(self, attempt: LocalAttempt) -> int | None:
        student = attempt.student
        if not student.name or not student.date_of_birth:
            logger.warning("Student name and date of birth are required to record the attempt on the server")
            return None
        try:
            server_attempt = await self._gateway.start_attempt(self._quiz_id, student)
        except ApiError as exc:
            logger.error("Could not create a server attempt for quiz %s: %s", self._quiz_id, exc)
            return None
        if not server_attempt.id:
            logger.error("Server returned an attempt without an id for quiz %s", self._quiz_id)
            return None

        attempt.server_attempt_id = server_attempt.id
        self._attempt_store.link_server_attempt(attempt.attempt_id, server_attempt.id)
        return server_attempt.id

    async def _submit_quietly(self, server_attempt_id: int, question_id: int, option_id: int) -> bool:
        try:
            await self._gateway.submit_answer(server_attempt_id, question_id, option_id)
        except ApiError as exc:
            logger.warning("Could not save answer to question %s (option %s): %s", question_id, option_id, exc)
            return False
        return True

    def _require_active(self) -> None:
        if self._state is not SessionState.ACTIVE:
            raise SessionError(f"Session is {self._state.value}, not active.")
