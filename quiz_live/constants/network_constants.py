"""Network configuration constants for the quiz application."""

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 8000
DEFAULT_SERVER_URL: str = "http://127.0.0.1:8000"
STORE_POLL_INTERVAL_SECONDS: float = 1.0
HTTP_TIMEOUT_SECONDS: float = 5.0

HOST_ENV_VAR: str = "QUIZ_LIVE_HOST"
PORT_ENV_VAR: str = "QUIZ_LIVE_PORT"
LOG_LEVEL_ENV_VAR: str = "QUIZ_LIVE_LOG_LEVEL"
