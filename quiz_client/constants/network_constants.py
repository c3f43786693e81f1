"""Network configuration constants for the quiz client."""

DEFAULT_API_BASE_URL: str = "http://localhost:3000/api"
DEFAULT_REQUEST_TIMEOUT_SECONDS: float = 10.0
DEV_SERVER_HOST: str = "127.0.0.1"
DEV_SERVER_PORT: int = 3000
DEV_API_PREFIX: str = "/api"
