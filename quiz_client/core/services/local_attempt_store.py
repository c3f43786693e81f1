"""Service for persisting in-progress attempts on this machine."""

from __future__ import annotations

from datetime import datetime
import json
import logging

from quiz_client.core.key_value_store import KeyValueStore
from quiz_client.core.models import LocalAttempt, StudentIdentity
from quiz_client.core.normalizers import parse_timestamp

logger = logging.getLogger(__name__)


class LocalAttemptStore:
    """Keeps the attempt-token -> LocalAttempt mapping under one storage key.

    Reads never raise: missing or corrupted state is reported as empty.
    Writes are best-effort and failures are only logged. The store does
    not deduplicate by quiz; callers keep at most one attempt per quiz.
    """

    def __init__(self, backend: KeyValueStore, storage_key: str) -> None:
        self._backend = backend
        self._storage_key = storage_key

    def save_attempt(self, attempt: LocalAttempt) -> None:
        """Insert or replace the attempt stored under its token."""
        attempts = self.get_all_attempts()
        attempts[attempt.attempt_id] = attempt
        self._write(attempts)

    def get_attempt(self, attempt_id: str) -> LocalAttempt | None:
        return self.get_all_attempts().get(attempt_id)

    def get_all_attempts(self) -> dict[str, LocalAttempt]:
        try:
            raw = self._backend.get(self._storage_key)
        except OSError as exc:
            logger.warning("Local attempt storage unavailable: %s", exc)
            return {}
        if not raw:
            return {}
        try:
            document = json.loads(raw)
        except ValueError:
            logger.warning("Discarding corrupted local attempt storage")
            return {}
        if not isinstance(document, dict):
            return {}

        attempts: dict[str, LocalAttempt] = {}
        for attempt_id, entry in document.items():
            attempt = _deserialize_attempt(attempt_id, entry)
            if attempt is None:
                logger.warning("Skipping unreadable local attempt %s", attempt_id)
                continue
            attempts[attempt_id] = attempt
        return attempts

    def find_by_quiz(self, quiz_id: int) -> LocalAttempt | None:
        return next(
            (attempt for attempt in self.get_all_attempts().values() if attempt.quiz_id == quiz_id),
            None,
        )

    def update_answer(self, attempt_id: str, question_id: int, answer: str) -> None:
        attempts = self.get_all_attempts()
        attempt = attempts.get(attempt_id)
        if attempt is None:
            return
        attempt.answers[question_id] = answer
        self._write(attempts)

    def link_server_attempt(self, attempt_id: str, server_attempt_id: int) -> None:
        attempts = self.get_all_attempts()
        attempt = attempts.get(attempt_id)
        if attempt is None:
            return
        attempt.server_attempt_id = server_attempt_id
        self._write(attempts)

    def remove_attempt(self, attempt_id: str) -> None:
        attempts = self.get_all_attempts()
        if attempts.pop(attempt_id, None) is not None:
            self._write(attempts)

    def remove_by_quiz(self, quiz_id: int) -> None:
        attempts = self.get_all_attempts()
        match = next((key for key, attempt in attempts.items() if attempt.quiz_id == quiz_id), None)
        if match is not None:
            del attempts[match]
            self._write(attempts)

    def _write(self, attempts: dict[str, LocalAttempt]) -> None:
        document = {key: _serialize_attempt(attempt) for key, attempt in attempts.items()}
        try:
            self._backend.set(self._storage_key, json.dumps(document))
        except OSError as exc:
            logger.warning("Could not persist local attempts: %s", exc)


def _serialize_attempt(attempt: LocalAttempt) -> dict[str, object]:
    entry: dict[str, object] = {
        "attemptId": attempt.attempt_id,
        "quizId": attempt.quiz_id,
        "studentInfo": {
            "name": attempt.student.name,
            "dateOfBirth": attempt.student.date_of_birth,
            "className": attempt.student.class_name,
        },
        "startAt": attempt.started_at.isoformat(),
        "answers": {str(question_id): answer for question_id, answer in attempt.answers.items()},
    }
    if attempt.server_attempt_id is not None:
        entry["serverAttemptId"] = attempt.server_attempt_id
    return entry


def _deserialize_attempt(attempt_id: str, entry: object) -> LocalAttempt | None:
    if not isinstance(entry, dict):
        return None
    started_at: datetime | None = parse_timestamp(entry.get("startAt"))
    student_info = entry.get("studentInfo")
    if started_at is None or not isinstance(student_info, dict):
        return None
    try:
        quiz_id = int(entry["quizId"])
    except (KeyError, TypeError, ValueError):
        return None

    answers: dict[int, str] = {}
    raw_answers = entry.get("answers")
    if isinstance(raw_answers, dict):
        for question_id, answer in raw_answers.items():
            if not isinstance(answer, str):
                continue
            try:
                answers[int(question_id)] = answer
            except ValueError:
                continue

    server_attempt_id = entry.get("serverAttemptId")
    return LocalAttempt(
        attempt_id=str(entry.get("attemptId") or attempt_id),
        quiz_id=quiz_id,
        student=StudentIdentity(
            name=str(student_info.get("name") or ""),
            date_of_birth=student_info.get("dateOfBirth"),
            class_name=student_info.get("className"),
        ),
        started_at=started_at,
        answers=answers,
        server_attempt_id=server_attempt_id if isinstance(server_attempt_id, int) else None,
    )
