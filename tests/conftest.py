"""Shared fixtures: in-memory lease store with real-time expiry and pub/sub."""

import asyncio
import json
import time

import pytest

from redis_mutex.domain.keys import LockKeys


class FakeSubscription:
    def __init__(self, store: "FakeLeaseStore", channel: str) -> None:
        self._store = store
        self.channel = channel
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self.closed = False

    def deliver(self, message: str) -> None:
        self._queue.put_nowait(message)

    async def messages(self):
        while True:
            message = await self._queue.get()
            if message is None:
                return
            yield message

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._store._subscriptions.remove(self)
        self._queue.put_nowait(None)


class FakeLeaseStore:
    """In-memory lease store. Each call yields to the loop once, like a network round trip."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}
        self._expires: dict[str, float] = {}
        self._counters: dict[str, int] = {}
        self._subscriptions: list[FakeSubscription] = []
        self._close_callbacks: list = []
        self.set_calls = 0
        self.subscribe_calls = 0

    def _purge(self, key: str) -> None:
        expires = self._expires.get(key)
        if expires is not None and time.monotonic() >= expires:
            self._store.pop(key, None)
            self._expires.pop(key, None)

    def get(self, key: str) -> str | None:
        self._purge(key)
        return self._store.get(key)

    def publish(self, channel: str, message: str) -> None:
        for subscription in list(self._subscriptions):
            if subscription.channel == channel:
                subscription.deliver(message)

    async def set_if_absent(self, key: str, value: str, ttl: float | None) -> bool:
        await asyncio.sleep(0)
        self.set_calls += 1
        self._purge(key)
        if key in self._store:
            return False
        self._store[key] = value
        if ttl is not None:
            self._expires[key] = time.monotonic() + ttl
        return True

    async def compare_delete_publish(self, key: str, value: str, channel: str) -> bool:
        await asyncio.sleep(0)
        self._purge(key)
        if self._store.get(key) != value:
            return False
        del self._store[key]
        self._expires.pop(key, None)
        self.publish(channel, json.dumps({"key": key, "value": value}))
        return True

    async def renew_if_owner(self, key: str, value: str, ttl: float) -> bool:
        await asyncio.sleep(0)
        self._purge(key)
        if self._store.get(key) != value:
            return False
        self._expires[key] = time.monotonic() + ttl
        return True

    async def incr(self, key: str) -> int:
        await asyncio.sleep(0)
        self._counters[key] = self._counters.get(key, 0) + 1
        return self._counters[key]

    async def subscribe(self, channel: str) -> FakeSubscription:
        await asyncio.sleep(0)
        self.subscribe_calls += 1
        subscription = FakeSubscription(self, channel)
        self._subscriptions.append(subscription)
        return subscription

    def add_close_callback(self, callback) -> None:
        self._close_callbacks.append(callback)

    async def aclose(self) -> None:
        callbacks, self._close_callbacks = self._close_callbacks, []
        for callback in callbacks:
            await callback()


@pytest.fixture
async def store():
    store = FakeLeaseStore()
    yield store
    await store.aclose()


@pytest.fixture
def keys():
    return LockKeys(prefix="@test-mutex:")
