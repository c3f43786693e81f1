"""Service for the session-scoped student identity."""

from __future__ import annotations

import json
import logging

from quiz_client.core.key_value_store import KeyValueStore
from quiz_client.core.models import StudentIdentity

logger = logging.getLogger(__name__)


class StudentIdentityStore:
    """Holds the name, date of birth and class entered before a quiz."""

    def __init__(self, backend: KeyValueStore, storage_key: str) -> None:
        self._backend = backend
        self._storage_key = storage_key

    def save_identity(self, identity: StudentIdentity) -> StudentIdentity:
        name = identity.name.strip()
        if not name:
            raise ValueError("Student name must not be empty.")
        cleaned = StudentIdentity(
            name=name,
            date_of_birth=_clean_optional(identity.date_of_birth),
            class_name=_clean_optional(identity.class_name),
        )
        payload = {
            "name": cleaned.name,
            "dateOfBirth": cleaned.date_of_birth,
            "className": cleaned.class_name,
        }
        self._backend.set(self._storage_key, json.dumps(payload))
        return cleaned

    def get_identity(self) -> StudentIdentity | None:
        raw = self._backend.get(self._storage_key)
        if not raw:
            return None
        try:
            payload = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring corrupted student identity")
            return None
        if not isinstance(payload, dict) or not payload.get("name"):
            return None
        return StudentIdentity(
            name=str(payload["name"]),
            date_of_birth=payload.get("dateOfBirth"),
            class_name=payload.get("className"),
        )

    def clear_identity(self) -> None:
        self._backend.delete(self._storage_key)


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None
