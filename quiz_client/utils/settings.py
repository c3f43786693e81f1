"""Environment-driven settings for the quiz client."""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from dotenv import load_dotenv

from quiz_client.constants.network_constants import (
    DEFAULT_API_BASE_URL,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
)
from quiz_client.constants.storage_constants import (
    DEFAULT_STORAGE_KEY_PREFIX,
    DEFAULT_STORAGE_PATH,
    LOCAL_ATTEMPTS_KEY_SUFFIX,
    STUDENT_INFO_KEY_SUFFIX,
)


@dataclass(slots=True)
class ClientSettings:
    """Externally injected configuration: API location and storage naming."""

    api_base_url: str = DEFAULT_API_BASE_URL
    storage_key_prefix: str = DEFAULT_STORAGE_KEY_PREFIX
    storage_path: Path = DEFAULT_STORAGE_PATH
    access_token: str | None = None
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "ClientSettings":
        load_dotenv()
        raw_timeout = os.getenv("QUIZ_REQUEST_TIMEOUT_SECONDS", str(DEFAULT_REQUEST_TIMEOUT_SECONDS))
        try:
            timeout = float(raw_timeout)
        except ValueError as exc:
            raise ValueError(
                f"QUIZ_REQUEST_TIMEOUT_SECONDS must be a number, got {raw_timeout!r}"
            ) from exc
        if timeout <= 0:
            raise ValueError("QUIZ_REQUEST_TIMEOUT_SECONDS must be positive.")

        storage_path = os.getenv("QUIZ_STORAGE_PATH")
        return cls(
            api_base_url=os.getenv("QUIZ_API_BASE_URL", DEFAULT_API_BASE_URL).strip().rstrip("/"),
            storage_key_prefix=os.getenv("QUIZ_STORAGE_KEY_PREFIX", DEFAULT_STORAGE_KEY_PREFIX).strip()
            or DEFAULT_STORAGE_KEY_PREFIX,
            storage_path=Path(storage_path).expanduser() if storage_path else DEFAULT_STORAGE_PATH,
            access_token=os.getenv("QUIZ_API_TOKEN") or None,
            request_timeout_seconds=timeout,
        )

    @property
    def student_info_key(self) -> str:
        return f"{self.storage_key_prefix}_{STUDENT_INFO_KEY_SUFFIX}"

    @property
    def local_attempts_key(self) -> str:
        return f"{self.storage_key_prefix}_{LOCAL_ATTEMPTS_KEY_SUFFIX}"
