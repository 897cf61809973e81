"""
Cache invalidation signals for the UI data layer. Groups are marked stale and subscribers
are told which group changed; the data layer refetches and marks the group fresh again.
"""
import logging
from typing import Callable

logger = logging.getLogger(__name__)

ORDERS = "orders"
INVENTORY = "inventory"
DASHBOARD = "dashboard"

Listener = Callable[[str], None]


class InvalidationBus:
    def __init__(self) -> None:
        self._stale: set[str] = set()
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register listener(group); returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def invalidate(self, *groups: str) -> None:
        for group in groups:
            self._stale.add(group)
            logger.debug("Cache group invalidated: %s", group)
            for listener in list(self._listeners):
                listener(group)

    def is_stale(self, group: str) -> bool:
        return group in self._stale

    def mark_fresh(self, group: str) -> None:
        self._stale.discard(group)

    def stale_groups(self) -> set[str]:
        return set(self._stale)
