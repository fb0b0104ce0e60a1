"""
Release notifications. One subscriber per store connection listens on the release channel
and pushes each release onto the queue of every waiter registered for that lock key.
"""

import asyncio
import contextlib
import json
import logging
from functools import partial

from redis_mutex.locking.store import LeaseStore, Subscription

logger = logging.getLogger(__name__)


class Waiter:
    """A pending blocking acquisition. Released lock values for lock_key arrive on its queue."""

    def __init__(self, lock_key: str) -> None:
        self.lock_key = lock_key
        self._queue: asyncio.Queue[str] = asyncio.Queue()

    def notify(self, lock_value: str) -> None:
        self._queue.put_nowait(lock_value)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def wait(self, timeout: float | None) -> bool:
        """True if a release arrived, False if timeout passed first. None waits forever."""
        if timeout is None:
            await self._queue.get()
            return True
        try:
            await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return False
        return True


class ReleaseSubscriber:
    """
    Owns the channel subscription for one store. Started lazily by ensure_started;
    concurrent starts collapse into a single subscription.
    """

    def __init__(self, store: LeaseStore, channel: str) -> None:
        self._store = store
        self._channel = channel
        self._waiters: dict[str, set[Waiter]] = {}
        self._subscription: Subscription | None = None
        self._task: asyncio.Task | None = None
        self._start_lock = asyncio.Lock()

    @property
    def channel(self) -> str:
        return self._channel

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def waiter_count(self, lock_key: str | None = None) -> int:
        if lock_key is not None:
            return len(self._waiters.get(lock_key, ()))
        return sum(len(waiters) for waiters in self._waiters.values())

    async def ensure_started(self) -> None:
        if self.running:
            return
        async with self._start_lock:
            if self.running:
                return
            subscription = await self._store.subscribe(self._channel)
            self._subscription = subscription
            self._task = asyncio.create_task(
                self._listen(subscription),
                name=f"release-subscriber:{self._channel}",
            )

    def register(self, lock_key: str) -> Waiter:
        waiter = Waiter(lock_key)
        self._waiters.setdefault(lock_key, set()).add(waiter)
        return waiter

    def unregister(self, waiter: Waiter) -> None:
        waiters = self._waiters.get(waiter.lock_key)
        if waiters is None:
            return
        waiters.discard(waiter)
        if not waiters:
            del self._waiters[waiter.lock_key]

    def dispatch(self, raw: str) -> int:
        """Notify waiters of the released key. Returns how many were notified."""
        try:
            payload = json.loads(raw)
            lock_key = payload["key"]
            lock_value = payload["value"]
        except (ValueError, TypeError, KeyError) as e:
            logger.warning(
                "release_notification_malformed",
                extra={"channel": self._channel, "payload": raw, "error": str(e)},
            )
            return 0
        # Snapshot: a woken waiter may unregister while we iterate.
        waiters = list(self._waiters.get(lock_key, ()))
        for waiter in waiters:
            waiter.notify(lock_value)
        return len(waiters)

    async def _listen(self, subscription: Subscription) -> None:
        try:
            async for raw in subscription.messages():
                self.dispatch(raw)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(
                "release_subscriber_stopped",
                extra={"channel": self._channel, "error": str(e)},
            )
        # Stream ended or the connection dropped; the next ensure_started resubscribes.
        if self._subscription is subscription:
            self._subscription = None
            await self._close_subscription(subscription)

    async def _close_subscription(self, subscription: Subscription) -> None:
        try:
            await subscription.close()
        except Exception as e:
            logger.warning(
                "release_subscription_close_failed",
                extra={"channel": self._channel, "error": str(e)},
            )

    async def close(self) -> None:
        """Unsubscribe and stop listening. Registered waiters are kept."""
        task, subscription = self._task, self._subscription
        self._task = None
        self._subscription = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if subscription is not None:
            await self._close_subscription(subscription)


class SubscriberRegistry:
    """
    Release subscribers keyed by (store, channel). An entry is torn down when its store
    closes, and dropped unless waiters still reference it.
    """

    def __init__(self) -> None:
        self._subscribers: dict[tuple[LeaseStore, str], ReleaseSubscriber] = {}

    def get(self, store: LeaseStore, channel: str) -> ReleaseSubscriber:
        key = (store, channel)
        subscriber = self._subscribers.get(key)
        if subscriber is None:
            subscriber = ReleaseSubscriber(store, channel)
            self._subscribers[key] = subscriber
            store.add_close_callback(partial(self._on_store_closed, key))
        return subscriber

    def __contains__(self, key: tuple[LeaseStore, str]) -> bool:
        return key in self._subscribers

    async def _on_store_closed(self, key: tuple[LeaseStore, str]) -> None:
        subscriber = self._subscribers.get(key)
        if subscriber is None:
            return
        await subscriber.close()
        if subscriber.waiter_count() == 0:
            del self._subscribers[key]
        else:
            # Waiters resubscribe on their next attempt, so tear down again on the next close.
            key[0].add_close_callback(partial(self._on_store_closed, key))


subscribers = SubscriberRegistry()
