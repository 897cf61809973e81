"""Tests for the refresh coordinator: coalescing, precondition, failure propagation."""
import asyncio
import gc
import time

import pytest

from dashboard_client.auth_api import TokenGrant
from dashboard_client.errors import RefreshError
from dashboard_client.refresh import RefreshCoordinator
from dashboard_client.storage import MemoryStorage
from dashboard_client.token_store import TokenStore


def _tokens(refresh_token="rt-1") -> TokenStore:
    t = TokenStore(MemoryStorage())
    t.set_session("old-at", refresh_token, expires_at=time.time() - 120, subject="CUST-001")
    return t


class SlowExchange:
    """Refresh exchange that blocks until released, counting calls."""

    def __init__(self, grant=None, error=None):
        self.calls = []
        self.release = None
        self.grant = grant or TokenGrant("new-at", time.time() + 3600)
        self.error = error

    async def __call__(self, refresh_token):
        self.calls.append(refresh_token)
        await self.release.wait()
        if self.error:
            raise self.error
        return self.grant


def test_concurrent_callers_share_one_exchange():
    tokens = _tokens()
    exchange = SlowExchange()

    async def main():
        exchange.release = asyncio.Event()
        coordinator = RefreshCoordinator(tokens, exchange)
        waiters = [asyncio.ensure_future(coordinator.refresh()) for _ in range(20)]
        await asyncio.sleep(0)
        assert coordinator.in_flight
        exchange.release.set()
        return await asyncio.gather(*waiters)

    results = asyncio.run(main())
    assert exchange.calls == ["rt-1"]
    assert results == ["new-at"] * 20
    assert tokens.get_valid_access_token() == "new-at"
    assert tokens.refresh_token == "rt-1"


def test_failure_reaches_every_coalesced_caller_and_keeps_session():
    tokens = _tokens()
    exchange = SlowExchange(error=RefreshError("Refresh rejected"))

    async def main():
        exchange.release = asyncio.Event()
        coordinator = RefreshCoordinator(tokens, exchange)
        waiters = [asyncio.ensure_future(coordinator.refresh()) for _ in range(5)]
        await asyncio.sleep(0)
        exchange.release.set()
        return await asyncio.gather(*waiters, return_exceptions=True)

    results = asyncio.run(main())
    assert len(exchange.calls) == 1
    assert all(isinstance(r, RefreshError) for r in results)
    # clearing the session is the pipeline's job
    assert tokens.refresh_token == "rt-1"
    assert tokens.session.access_token == "old-at"


def test_missing_refresh_token_fails_immediately():
    tokens = _tokens(refresh_token=None)
    exchange = SlowExchange()
    coordinator = RefreshCoordinator(tokens, exchange)
    with pytest.raises(RefreshError):
        asyncio.run(coordinator.refresh())
    assert exchange.calls == []


def test_sequential_refreshes_each_call_exchange():
    tokens = _tokens()
    exchange = SlowExchange()

    async def main():
        exchange.release = asyncio.Event()
        exchange.release.set()
        coordinator = RefreshCoordinator(tokens, exchange)
        await coordinator.refresh()
        await coordinator.refresh()
        return coordinator

    coordinator = asyncio.run(main())
    assert len(exchange.calls) == 2
    assert not coordinator.in_flight


def test_rotated_refresh_token_is_stored():
    tokens = _tokens()
    exchange = SlowExchange(grant=TokenGrant("new-at", time.time() + 3600, refresh_token="rt-2"))

    async def main():
        exchange.release = asyncio.Event()
        exchange.release.set()
        return await RefreshCoordinator(tokens, exchange).refresh()

    assert asyncio.run(main()) == "new-at"
    assert tokens.refresh_token == "rt-2"


def test_cancelled_caller_does_not_cancel_shared_refresh():
    tokens = _tokens()
    exchange = SlowExchange()

    async def main():
        exchange.release = asyncio.Event()
        coordinator = RefreshCoordinator(tokens, exchange)
        first = asyncio.ensure_future(coordinator.refresh())
        second = asyncio.ensure_future(coordinator.refresh())
        await asyncio.sleep(0)
        first.cancel()
        await asyncio.sleep(0)
        exchange.release.set()
        return first, await second

    first, token = asyncio.run(main())
    assert first.cancelled()
    assert token == "new-at"
    assert len(exchange.calls) == 1


def test_sign_out_during_refresh_discards_new_token():
    tokens = _tokens()
    exchange = SlowExchange()

    async def main():
        exchange.release = asyncio.Event()
        coordinator = RefreshCoordinator(tokens, exchange)
        pending = asyncio.ensure_future(coordinator.refresh())
        await asyncio.sleep(0)
        tokens.clear()
        exchange.release.set()
        with pytest.raises(RefreshError):
            await pending

    asyncio.run(main())
    assert not tokens.is_authenticated
    assert tokens.session.access_token is None
    assert tokens.refresh_token is None


def test_new_sign_in_during_refresh_is_left_alone():
    tokens = _tokens()
    exchange = SlowExchange()

    async def main():
        exchange.release = asyncio.Event()
        coordinator = RefreshCoordinator(tokens, exchange)
        pending = asyncio.ensure_future(coordinator.refresh())
        await asyncio.sleep(0)
        tokens.set_session("other-at", "rt-9", expires_at=time.time() + 3600, subject="CUST-002")
        exchange.release.set()
        with pytest.raises(RefreshError):
            await pending

    asyncio.run(main())
    assert tokens.get_valid_access_token() == "other-at"
    assert tokens.subject == "CUST-002"


def test_failed_refresh_with_no_waiters_is_not_reported_unretrieved():
    tokens = _tokens()
    exchange = SlowExchange(error=RefreshError("Refresh rejected"))
    reported = []

    async def main():
        asyncio.get_running_loop().set_exception_handler(lambda loop, ctx: reported.append(ctx))
        exchange.release = asyncio.Event()
        coordinator = RefreshCoordinator(tokens, exchange)
        caller = asyncio.ensure_future(coordinator.refresh())
        await asyncio.sleep(0)
        caller.cancel()
        await asyncio.sleep(0)
        exchange.release.set()
        for _ in range(5):
            await asyncio.sleep(0)
        assert not coordinator.in_flight
        del coordinator, caller
        gc.collect()

    asyncio.run(main())
    assert [ctx for ctx in reported if "never retrieved" in ctx.get("message", "")] == []
