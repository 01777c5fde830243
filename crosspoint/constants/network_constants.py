"""Network configuration constants for the Crosspoint server."""

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 8000
DEFAULT_AUTHORIZED_DOMAINS: tuple[str, ...] = ("localhost", "127.0.0.1")
SESSION_COOKIE: str = "crosspoint_session"
SESSION_COOKIE_MAX_AGE_SECONDS: int = 60 * 60 * 24 * 30
SESSION_IDLE_TIMEOUT_SECONDS: float = 60 * 30
