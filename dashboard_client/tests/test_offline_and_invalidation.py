"""Tests for the offline action queue and the invalidation bus."""
import asyncio

from dashboard_client.invalidation import DASHBOARD, INVENTORY, ORDERS, InvalidationBus
from dashboard_client.offline_queue import OfflineQueue


def _queue_with(*types, max_retries=3) -> OfflineQueue:
    q = OfflineQueue(max_retries=max_retries)
    for t in types:
        q.add(t, {"t": t})
    return q


def test_add_keeps_insertion_order_and_fills_fields():
    q = _queue_with("create_order", "update_stock")
    first, second = q.actions
    assert [a.type for a in q.actions] == ["create_order", "update_stock"]
    assert first.id.startswith("q_")
    assert first.id != second.id
    assert first.retries == 0
    assert first.timestamp > 0


def test_remove_and_clear():
    q = _queue_with("a", "b", "c")
    q.remove(q.actions[1].id)
    assert [a.type for a in q.actions] == ["a", "c"]
    q.clear()
    assert len(q) == 0


def test_online_flag():
    q = OfflineQueue()
    assert q.is_online is True
    q.set_online(False)
    assert q.is_online is False


def test_replay_success_empties_queue_in_order():
    q = _queue_with("a", "b", "c")
    seen = []

    async def handler(action):
        seen.append(action.type)

    assert asyncio.run(q.replay(handler)) == 3
    assert seen == ["a", "b", "c"]
    assert len(q) == 0


def test_replay_stops_at_first_failure_and_counts_retry():
    q = _queue_with("a", "b", "c")
    seen = []

    async def handler(action):
        seen.append(action.type)
        if action.type == "b":
            raise ConnectionError("offline again")

    assert asyncio.run(q.replay(handler)) == 1
    assert seen == ["a", "b"]
    assert [a.type for a in q.actions] == ["b", "c"]
    assert q.actions[0].retries == 1


def test_exhausted_action_waits_for_explicit_discard():
    q = _queue_with("bad", "good", max_retries=2)
    attempts = []

    async def handler(action):
        attempts.append(action.type)
        if action.type == "bad":
            raise ValueError("rejected")

    assert asyncio.run(q.replay(handler)) == 0
    assert asyncio.run(q.replay(handler)) == 0
    bad = q.actions[0]
    assert bad.retries == 2
    assert q.exhausted == [bad]
    # Out of retries: kept, not attempted again, nothing behind it overtakes it
    assert asyncio.run(q.replay(handler)) == 0
    assert attempts == ["bad", "bad"]
    assert [a.type for a in q.actions] == ["bad", "good"]

    q.remove(bad.id)
    assert q.exhausted == []
    assert asyncio.run(q.replay(handler)) == 1
    assert len(q) == 0


def test_bus_marks_and_notifies():
    bus = InvalidationBus()
    seen = []
    bus.subscribe(seen.append)
    bus.invalidate(ORDERS, DASHBOARD)
    assert seen == [ORDERS, DASHBOARD]
    assert bus.stale_groups() == {ORDERS, DASHBOARD}
    bus.mark_fresh(ORDERS)
    assert not bus.is_stale(ORDERS)
    assert bus.is_stale(DASHBOARD)


def test_bus_unsubscribe():
    bus = InvalidationBus()
    seen = []
    unsubscribe = bus.subscribe(seen.append)
    unsubscribe()
    unsubscribe()
    bus.invalidate(INVENTORY)
    assert seen == []
    assert bus.is_stale(INVENTORY)
