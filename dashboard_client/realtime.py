"""
Realtime invalidation channel.
Listens on the backend's change-event socket and turns order/inventory events into cache
invalidation signals. Reconnects with exponential backoff up to a bounded number of attempts,
then stops until reset(). With no socket URL but mock mode on, it polls instead: every
interval all groups are invalidated and no connection is opened.

All state changes go through next_status(); the socket loop only feeds it events.
"""
import asyncio
import contextlib
import enum
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from websockets.asyncio.client import connect as websocket_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from dashboard_client.context import SessionContext
from dashboard_client.invalidation import DASHBOARD, INVENTORY, ORDERS

logger = logging.getLogger(__name__)

MODE_REALTIME = "realtime"
MODE_POLLING = "polling"
MODE_DISABLED = "disabled"

# Event type -> cache groups it makes stale
EVENT_GROUPS: dict[str, tuple[str, ...]] = {
    "new_order": (ORDERS, DASHBOARD),
    "order_updated": (ORDERS, DASHBOARD),
    "inventory_updated": (INVENTORY, DASHBOARD),
}


class ChannelState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    STOPPED = "stopped"
    CLOSED = "closed"


class ChannelEvent(enum.Enum):
    CONNECT = "connect"
    OPENED = "opened"
    LOST = "lost"  # close or error
    RESET = "reset"
    TEARDOWN = "teardown"


@dataclass(frozen=True)
class ChannelStatus:
    state: ChannelState = ChannelState.DISCONNECTED
    attempts: int = 0
    delay: float | None = None  # seconds to wait before the next CONNECT

    @property
    def connected(self) -> bool:
        return self.state is ChannelState.CONNECTED


def next_status(
    status: ChannelStatus,
    event: ChannelEvent,
    *,
    max_attempts: int,
    base_delay: float,
) -> ChannelStatus:
    """Transition function for the channel. Events that do not apply leave status unchanged."""
    if status.state is ChannelState.CLOSED:
        return status
    if event is ChannelEvent.TEARDOWN:
        return ChannelStatus(ChannelState.CLOSED, status.attempts)
    if status.state is ChannelState.STOPPED:
        # Only RESET leaves STOPPED
        if event is ChannelEvent.RESET:
            return ChannelStatus(ChannelState.DISCONNECTED)
        return status

    if event is ChannelEvent.CONNECT and status.state is ChannelState.DISCONNECTED:
        return ChannelStatus(ChannelState.CONNECTING, status.attempts)
    if event is ChannelEvent.OPENED and status.state is ChannelState.CONNECTING:
        return ChannelStatus(ChannelState.CONNECTED, 0)
    if event is ChannelEvent.LOST and status.state in (ChannelState.CONNECTING, ChannelState.CONNECTED):
        if status.attempts >= max_attempts:
            return ChannelStatus(ChannelState.STOPPED, status.attempts)
        return ChannelStatus(
            ChannelState.DISCONNECTED,
            status.attempts + 1,
            base_delay * (2**status.attempts),
        )
    return status


def groups_for_message(raw: Any) -> tuple[str, ...]:
    """Cache groups named by one socket message; () for unknown or malformed messages."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.debug("Dropping malformed realtime message: %s", e)
        return ()
    if not isinstance(data, dict):
        logger.debug("Dropping realtime message that is not an object: %r", data)
        return ()
    event_type = data.get("type")
    if not isinstance(event_type, str):
        logger.debug("Dropping realtime message without a type")
        return ()
    return EVENT_GROUPS.get(event_type, ())


class RealtimeChannel:
    def __init__(
        self,
        context: SessionContext,
        *,
        connect: Callable[[str], Awaitable[Any]] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        settings = context.settings
        self._bus = context.invalidation
        self._url = settings.ws_url
        self._mock = settings.ws_mock
        self._max_attempts = settings.ws_max_reconnect_attempts
        self._base_delay = settings.ws_reconnect_base_seconds
        self._poll_interval = settings.poll_interval_seconds
        self._connect = connect or websocket_connect
        self._sleep = sleep
        self._status = ChannelStatus()
        self._task: asyncio.Task | None = None
        self._ws = None

    @property
    def mode(self) -> str:
        if self._url:
            return MODE_REALTIME
        if self._mock:
            return MODE_POLLING
        return MODE_DISABLED

    @property
    def status(self) -> ChannelStatus:
        return self._status

    @property
    def connected(self) -> bool:
        return self._status.connected

    def start(self) -> asyncio.Task | None:
        """Start the background task (needs a running loop). No-op when disabled, closed or running."""
        if self.mode == MODE_DISABLED or self._status.state is ChannelState.CLOSED:
            return None
        if self._task is not None and not self._task.done():
            return self._task
        self._task = asyncio.create_task(self.run())
        return self._task

    def reset(self) -> asyncio.Task | None:
        """
        Clear the attempt counter after the channel stopped, and start again. While the
        channel is still connecting, connected or backing off this only returns the running task.
        """
        self._apply(ChannelEvent.RESET)
        return self.start()

    async def close(self) -> None:
        """Teardown: cancel timers and the run task, close the socket. Safe to call twice."""
        self._apply(ChannelEvent.TEARDOWN)
        ws, self._ws = self._ws, None
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if ws is not None:
            await ws.close()

    def handle_message(self, raw: Any) -> tuple[str, ...]:
        groups = groups_for_message(raw)
        if groups:
            self._bus.invalidate(*groups)
        return groups

    async def run(self) -> None:
        """Channel loop for the configured mode; returns when stopped or closed."""
        if self.mode == MODE_REALTIME:
            await self._run_socket()
        elif self.mode == MODE_POLLING:
            await self._run_polling()

    async def _run_socket(self) -> None:
        while True:
            self._apply(ChannelEvent.CONNECT)
            if self._status.state is not ChannelState.CONNECTING:
                return
            try:
                ws = await self._connect(self._url)
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.debug("Realtime connect to %s failed: %s", self._url, e)
            else:
                self._ws = ws
                self._apply(ChannelEvent.OPENED)
                logger.info("Realtime channel connected to %s", self._url)
                try:
                    async for message in ws:
                        self.handle_message(message)
                except ConnectionClosed as e:
                    logger.debug("Realtime connection closed: %s", e)
                finally:
                    self._ws = None

            self._apply(ChannelEvent.LOST)
            if self._status.state is ChannelState.STOPPED:
                logger.info(
                    "Realtime channel stopped after %s reconnect attempts; data may be stale until reset",
                    self._status.attempts,
                )
                return
            if self._status.state is not ChannelState.DISCONNECTED:
                return
            logger.debug(
                "Realtime reconnect %s/%s in %.1fs",
                self._status.attempts,
                self._max_attempts,
                self._status.delay,
            )
            await self._sleep(self._status.delay)

    async def _run_polling(self) -> None:
        while self._status.state is not ChannelState.CLOSED:
            await self._sleep(self._poll_interval)
            self._bus.invalidate(ORDERS, INVENTORY, DASHBOARD)

    def _apply(self, event: ChannelEvent) -> None:
        self._status = next_status(
            self._status,
            event,
            max_attempts=self._max_attempts,
            base_delay=self._base_delay,
        )
