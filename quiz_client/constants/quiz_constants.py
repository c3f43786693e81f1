"""Quiz-related constants shared across the core layers."""

DEFAULT_DURATION_MINUTES: int = 60
DEFAULT_QUESTION_POINTS: int = 1
COUNTDOWN_TICK_INTERVAL_SECONDS: float = 1.0
LOCAL_ATTEMPT_TOKEN_PREFIX: str = "local_"
MULTI_SELECT_SEPARATOR: str = ","
