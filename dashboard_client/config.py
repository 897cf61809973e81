"""
Dashboard client configuration. Read once from the environment at import; never reloaded.
Components take a Settings instance so tests can pass explicit values.
"""
import os
from dataclasses import dataclass


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


# Backend REST API base address (demo_backend listens on 8100)
API_BASE_URL = os.environ.get("DASHBOARD_API_BASE_URL", "http://127.0.0.1:8100").rstrip("/")

# Realtime change-event socket. Unset means no socket; see WS_MOCK.
WS_URL = os.environ.get("DASHBOARD_WS_URL", "").strip() or None

# Demo/mock mode: with no WS_URL, invalidate caches on a fixed interval instead
WS_MOCK = _env_bool("DASHBOARD_WS_MOCK")

# Tokens are treated as expired this many seconds early so they never expire mid-flight
TOKEN_SKEW_SECONDS = int(os.environ.get("DASHBOARD_TOKEN_SKEW_SECONDS", "60"))

REQUEST_TIMEOUT = float(os.environ.get("DASHBOARD_REQUEST_TIMEOUT", "30"))

# Reconnect backoff: base * 2**attempt, at most MAX attempts (1s, 2s, 4s, 8s, 16s)
WS_MAX_RECONNECT_ATTEMPTS = int(os.environ.get("DASHBOARD_WS_MAX_RECONNECT_ATTEMPTS", "5"))
WS_RECONNECT_BASE_SECONDS = float(os.environ.get("DASHBOARD_WS_RECONNECT_BASE_SECONDS", "1.0"))

# Polling fallback interval (mock mode without a socket)
POLL_INTERVAL_SECONDS = float(os.environ.get("DASHBOARD_POLL_INTERVAL_SECONDS", "30"))

# Durable session storage (SQLite key-value table)
SESSION_DB_URL = os.environ.get("DASHBOARD_SESSION_DB_URL", "sqlite:///./dashboard_session.db")

# Where the UI is sent after an irrecoverable authorization failure
SIGN_IN_PATH = os.environ.get("DASHBOARD_SIGN_IN_PATH", "/login")

# Offline queue: replay attempts before an action is discarded
OFFLINE_MAX_RETRIES = int(os.environ.get("DASHBOARD_OFFLINE_MAX_RETRIES", "3"))


@dataclass(frozen=True)
class Settings:
    api_base_url: str = API_BASE_URL
    ws_url: str | None = WS_URL
    ws_mock: bool = WS_MOCK
    token_skew_seconds: int = TOKEN_SKEW_SECONDS
    request_timeout: float = REQUEST_TIMEOUT
    ws_max_reconnect_attempts: int = WS_MAX_RECONNECT_ATTEMPTS
    ws_reconnect_base_seconds: float = WS_RECONNECT_BASE_SECONDS
    poll_interval_seconds: float = POLL_INTERVAL_SECONDS
    session_db_url: str = SESSION_DB_URL
    sign_in_path: str = SIGN_IN_PATH
    offline_max_retries: int = OFFLINE_MAX_RETRIES
