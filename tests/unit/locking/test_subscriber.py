"""ReleaseSubscriber and registry: dispatch, poison messages, lifecycle per store connection."""

import asyncio
import json
import logging

import pytest

from redis_mutex.locking.subscriber import ReleaseSubscriber, SubscriberRegistry, Waiter

CHANNEL = "@test-mutex:locks-releases"


def _release_message(key: str, value: str = "v") -> str:
    return json.dumps({"key": key, "value": value})


@pytest.mark.asyncio
async def test_dispatch_notifies_matching_waiters_only(store):
    subscriber = ReleaseSubscriber(store, CHANNEL)
    first = subscriber.register("lock-a")
    second = subscriber.register("lock-a")
    other = subscriber.register("lock-b")

    assert subscriber.dispatch(_release_message("lock-a")) == 2
    assert first.pending == 1
    assert second.pending == 1
    assert other.pending == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", ["not json", "[1, 2]", "5", json.dumps({"value": "v"})])
async def test_malformed_payload_is_ignored(store, caplog, payload):
    subscriber = ReleaseSubscriber(store, CHANNEL)
    waiter = subscriber.register("lock-a")

    with caplog.at_level(logging.WARNING):
        assert subscriber.dispatch(payload) == 0
    assert waiter.pending == 0
    assert "release_notification_malformed" in caplog.text


@pytest.mark.asyncio
async def test_poison_message_does_not_stop_listener(store):
    subscriber = ReleaseSubscriber(store, CHANNEL)
    await subscriber.ensure_started()
    waiter = subscriber.register("lock-a")

    store.publish(CHANNEL, "{broken")
    store.publish(CHANNEL, _release_message("lock-a"))

    assert await waiter.wait(1) is True
    assert subscriber.running is True
    await subscriber.close()


@pytest.mark.asyncio
async def test_unregister_removes_empty_keys(store):
    subscriber = ReleaseSubscriber(store, CHANNEL)
    waiter = subscriber.register("lock-a")
    assert subscriber.waiter_count("lock-a") == 1

    subscriber.unregister(waiter)
    subscriber.unregister(waiter)
    assert subscriber.waiter_count() == 0
    assert subscriber.dispatch(_release_message("lock-a")) == 0


@pytest.mark.asyncio
async def test_concurrent_starts_share_one_subscription(store):
    subscriber = ReleaseSubscriber(store, CHANNEL)
    await asyncio.gather(*(subscriber.ensure_started() for _ in range(10)))
    assert store.subscribe_calls == 1
    await subscriber.close()


@pytest.mark.asyncio
async def test_resubscribes_after_stream_ends(store):
    subscriber = ReleaseSubscriber(store, CHANNEL)
    await subscriber.ensure_started()

    # Simulate the server dropping the subscription
    await store._subscriptions[0].close()
    await asyncio.sleep(0.01)
    assert subscriber.running is False

    await subscriber.ensure_started()
    assert store.subscribe_calls == 2
    assert subscriber.running is True
    await subscriber.close()


@pytest.mark.asyncio
async def test_waiter_wait_times_out():
    waiter = Waiter("lock-a")
    assert await waiter.wait(0.01) is False

    waiter.notify("v")
    assert await waiter.wait(None) is True


@pytest.mark.asyncio
async def test_registry_returns_one_subscriber_per_store(store):
    registry = SubscriberRegistry()
    assert registry.get(store, CHANNEL) is registry.get(store, CHANNEL)
    assert registry.get(store, CHANNEL) is not registry.get(store, "other-channel")


@pytest.mark.asyncio
async def test_store_close_tears_down_and_recreates(store):
    registry = SubscriberRegistry()
    subscriber = registry.get(store, CHANNEL)
    await subscriber.ensure_started()

    await store.aclose()
    assert subscriber.running is False
    assert store._subscriptions == []
    assert (store, CHANNEL) not in registry

    recreated = registry.get(store, CHANNEL)
    assert recreated is not subscriber
    await recreated.ensure_started()
    assert store.subscribe_calls == 2


@pytest.mark.asyncio
async def test_store_close_keeps_subscriber_with_waiters(store):
    registry = SubscriberRegistry()
    subscriber = registry.get(store, CHANNEL)
    await subscriber.ensure_started()
    waiter = subscriber.register("lock-a")

    await store.aclose()
    assert subscriber.running is False
    assert registry.get(store, CHANNEL) is subscriber

    await subscriber.ensure_started()
    store.publish(CHANNEL, _release_message("lock-a"))
    assert await waiter.wait(1) is True

    subscriber.unregister(waiter)
    await store.aclose()
    assert (store, CHANNEL) not in registry
