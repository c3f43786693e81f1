"""Client-side persistence keys and locations."""

from pathlib import Path

DEFAULT_STORAGE_KEY_PREFIX: str = "quizteacherfe"
STUDENT_INFO_KEY_SUFFIX: str = "student_info"
LOCAL_ATTEMPTS_KEY_SUFFIX: str = "local_attempts"
DEFAULT_STORAGE_PATH: Path = Path.home() / ".quiz_client" / "storage.json"
