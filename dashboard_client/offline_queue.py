"""
Queue of mutating actions attempted while offline, replayed in insertion order once the
connection is back. In-process only.
"""
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


@dataclass
class QueuedAction:
    id: str
    type: str
    payload: Any
    timestamp: float  # epoch ms
    retries: int = 0


def _new_action_id() -> str:
    return f"q_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class OfflineQueue:
    def __init__(self, max_retries: int = 3, online: bool = True):
        self._max_retries = max_retries
        self._online = online
        self._queue: list[QueuedAction] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        self._online = online

    @property
    def actions(self) -> list[QueuedAction]:
        return list(self._queue)

    def __len__(self) -> int:
        return len(self._queue)

    def add(self, action_type: str, payload: Any) -> QueuedAction:
        action = QueuedAction(
            id=_new_action_id(),
            type=action_type,
            payload=payload,
            timestamp=time.time() * 1000,
        )
        self._queue.append(action)
        return action

    def remove(self, action_id: str) -> None:
        self._queue = [a for a in self._queue if a.id != action_id]

    def clear(self) -> None:
        self._queue = []

    @property
    def exhausted(self) -> list[QueuedAction]:
        """Actions that used up their replay attempts; the caller decides to remove() them."""
        return [a for a in self._queue if a.retries >= self._max_retries]

    async def replay(self, handler: Callable[[QueuedAction], Awaitable[Any]]) -> int:
        """
        Run handler on each action in order; success removes the action. On failure the
        retry count goes up and replay stops there, so nothing overtakes it. An action out
        of retries stays at the head, unattempted, until the caller removes it.
        Returns actions replayed.
        """
        replayed = 0
        for action in list(self._queue):
            if action.retries >= self._max_retries:
                logger.warning(
                    "Replay blocked by action id=%s type=%s after %s attempts; remove it to continue",
                    action.id,
                    action.type,
                    action.retries,
                )
                break
            try:
                await handler(action)
            except Exception as e:
                action.retries += 1
                logger.info("Replay of action id=%s failed (attempt %s): %s", action.id, action.retries, e)
                break
            self.remove(action.id)
            replayed += 1
        return replayed
