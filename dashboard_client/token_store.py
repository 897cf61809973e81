"""
Session token store: access token, optional refresh token, expiry, signed-in customer.
Every change is persisted to a key-value storage (best-effort) and reloaded on construction.
Inside a running event loop the storage write goes to a single background thread, so a
slow disk never holds up request handling; writes keep their order.
"""
import asyncio
import json
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass, replace
from typing import Callable

from dashboard_client.storage import KeyValueStorage

logger = logging.getLogger(__name__)

STORAGE_KEY = "dashboard_session"


@dataclass(frozen=True)
class Session:
    access_token: str | None = None
    refresh_token: str | None = None
    expires_at: float | None = None  # epoch seconds
    subject: str | None = None  # customer id

    def is_authenticated(self, now: float | None = None) -> bool:
        if self.access_token is None or self.expires_at is None:
            return False
        return (time.time() if now is None else now) < self.expires_at


class TokenStore:
    def __init__(
        self,
        storage: KeyValueStorage,
        skew_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ):
        self._storage = storage
        self._skew = skew_seconds
        self._clock = clock
        self._session = self._load()
        # Bumped by sign-in and clear(); a refresh started under an older value is stale
        self._generation = 0
        self._executor: ThreadPoolExecutor | None = None
        self._pending: Future | None = None

    @property
    def session(self) -> Session:
        return self._session

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_authenticated(self) -> bool:
        return self._session.is_authenticated(self._clock())

    @property
    def refresh_token(self) -> str | None:
        return self._session.refresh_token

    @property
    def subject(self) -> str | None:
        return self._session.subject

    def set_session(
        self,
        access_token: str,
        refresh_token: str | None = None,
        *,
        expires_at: float,
        subject: str | None = None,
    ) -> None:
        """Replace the whole session (sign-in)."""
        self._generation += 1
        self._replace(
            Session(
                access_token=access_token,
                refresh_token=refresh_token,
                expires_at=expires_at,
                subject=subject,
            )
        )

    def update_access_token(
        self,
        access_token: str,
        *,
        expires_at: float,
        refresh_token: str | None = None,
    ) -> bool:
        """
        Refresh success: new access token and expiry; refresh token kept unless rotated.
        Returns False (and changes nothing) when there is no session to update.
        """
        if self._session.access_token is None and self._session.refresh_token is None:
            logger.info("Ignoring refreshed access token: no active session")
            return False
        self._replace(
            replace(
                self._session,
                access_token=access_token,
                expires_at=expires_at,
                refresh_token=refresh_token or self._session.refresh_token,
            )
        )
        return True

    def get_valid_access_token(self) -> str | None:
        """
        Access token if it is still valid for at least skew seconds, else None.
        At exactly expires_at - skew the token is already considered expired.
        """
        s = self._session
        if s.access_token is None or s.expires_at is None:
            return None
        if self._clock() >= s.expires_at - self._skew:
            return None
        return s.access_token

    def clear(self) -> None:
        self._generation += 1
        self._session = Session()
        self._persist("clear persisted session", self._storage.clear, STORAGE_KEY)

    def flush(self, timeout: float | None = None) -> None:
        """Block until queued storage writes are done."""
        if self._pending is not None:
            self._pending.result(timeout)

    def _replace(self, session: Session) -> None:
        self._session = session
        self._persist("persist session", self._storage.set, STORAGE_KEY, json.dumps(asdict(session)))

    def _persist(self, action: str, write: Callable, *args) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self._write(action, write, *args)
            return
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="token-store")
        self._pending = self._executor.submit(self._write, action, write, *args)

    @staticmethod
    def _write(action: str, write: Callable, *args) -> None:
        try:
            write(*args)
        except Exception as e:
            logger.warning("Could not %s: %s", action, e)

    def _load(self) -> Session:
        try:
            raw = self._storage.get(STORAGE_KEY)
        except Exception as e:
            logger.warning("Could not read persisted session: %s", e)
            return Session()
        if not raw:
            return Session()
        try:
            data = json.loads(raw)
            return Session(
                access_token=data.get("access_token"),
                refresh_token=data.get("refresh_token"),
                expires_at=data.get("expires_at"),
                subject=data.get("subject"),
            )
        except (ValueError, AttributeError) as e:
            logger.warning("Discarding unreadable persisted session: %s", e)
            return Session()
