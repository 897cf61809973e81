"""
Session context: the explicitly constructed state shared by the request pipeline and the
realtime channel. One per signed-in dashboard; pass it in, never import a global.
"""
from dataclasses import dataclass, field

from dashboard_client.config import Settings
from dashboard_client.invalidation import InvalidationBus
from dashboard_client.offline_queue import OfflineQueue
from dashboard_client.storage import KeyValueStorage, SqlStorage
from dashboard_client.token_store import TokenStore


@dataclass
class SessionContext:
    settings: Settings
    tokens: TokenStore
    invalidation: InvalidationBus = field(default_factory=InvalidationBus)
    offline: OfflineQueue = field(default_factory=OfflineQueue)

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        storage: KeyValueStorage | None = None,
    ) -> "SessionContext":
        """Build a context; storage defaults to the SQLite file named in settings."""
        settings = settings or Settings()
        if storage is None:
            storage = SqlStorage(settings.session_db_url)
        return cls(
            settings=settings,
            tokens=TokenStore(storage, skew_seconds=settings.token_skew_seconds),
            invalidation=InvalidationBus(),
            offline=OfflineQueue(max_retries=settings.offline_max_retries),
        )
