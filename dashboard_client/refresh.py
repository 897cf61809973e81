"""
Refresh coordinator: at most one refresh exchange in flight. Every caller that asks while
one is running awaits the same outcome. Never clears the session on failure; that is the
request pipeline's call.
"""
import asyncio
import logging
from typing import Awaitable, Callable

from dashboard_client.auth_api import TokenGrant
from dashboard_client.errors import RefreshError
from dashboard_client.token_store import TokenStore

logger = logging.getLogger(__name__)

RefreshExchange = Callable[[str], Awaitable[TokenGrant]]


def _retrieve_outcome(future: asyncio.Future) -> None:
    # Every waiter may have been cancelled; mark the failure as seen
    if not future.cancelled() and future.exception() is not None:
        logger.debug("Refresh failed: %s", future.exception())


class RefreshCoordinator:
    def __init__(self, tokens: TokenStore, exchange: RefreshExchange):
        self._tokens = tokens
        self._exchange = exchange
        self._inflight: asyncio.Future | None = None

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def refresh(self) -> str:
        """Return a new access token, sharing any refresh already in progress."""
        # Check and set without an await in between
        if self._inflight is None or self._inflight.done():
            refresh_token = self._tokens.refresh_token
            if not refresh_token:
                raise RefreshError("No refresh token")
            self._inflight = asyncio.ensure_future(self._run(refresh_token, self._tokens.generation))
            self._inflight.add_done_callback(_retrieve_outcome)
        # shield: a cancelled caller must not cancel the refresh for everyone else
        return await asyncio.shield(self._inflight)

    async def _run(self, refresh_token: str, generation: int) -> str:
        grant = await self._exchange(refresh_token)
        if self._tokens.generation != generation:
            logger.info("Session ended or changed during refresh; discarding the new access token")
            raise RefreshError("Session ended during refresh")
        self._tokens.update_access_token(
            grant.access_token,
            expires_at=grant.expires_at,
            refresh_token=grant.refresh_token,
        )
        logger.info(
            "Access token refreshed for subject=%s (refresh token rotated=%s)",
            self._tokens.subject,
            grant.refresh_token is not None and grant.refresh_token != refresh_token,
        )
        return grant.access_token
