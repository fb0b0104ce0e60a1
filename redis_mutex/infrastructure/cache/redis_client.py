# redis_mutex/infrastructure/cache/redis_client.py

import logging
import math
from typing import AsyncIterator, Awaitable, Callable

import redis.asyncio as redis

from redis_mutex.config.settings import MutexSettings, get_settings
from redis_mutex.infrastructure.cache.lua_scripts import RELEASE_SCRIPT, RENEW_SCRIPT

logger = logging.getLogger(__name__)

SUBSCRIBE_CONFIRM_TIMEOUT = 5.0


def _millis(ttl: float) -> int:
    """Seconds to PX milliseconds; rounds up so a lease is never shorter than asked."""
    return max(1, math.ceil(round(ttl * 1000, 6)))


def _text(data) -> str:
    return data.decode("utf-8") if isinstance(data, bytes) else data


class RedisSubscription:
    """One channel on a redis.asyncio PubSub connection."""

    def __init__(self, pubsub, channel: str) -> None:
        self._pubsub = pubsub
        self._channel = channel

    async def confirm(self, timeout: float = SUBSCRIBE_CONFIRM_TIMEOUT) -> None:
        """Subscribe and wait for the server's acknowledgement."""
        await self._pubsub.subscribe(self._channel)
        while True:
            message = await self._pubsub.get_message(timeout=timeout)
            if message is None:
                raise ConnectionError(f"Subscription to {self._channel} was not confirmed")
            if message["type"] == "subscribe":
                return

    async def messages(self) -> AsyncIterator[str]:
        async for message in self._pubsub.listen():
            if message["type"] == "message":
                yield _text(message["data"])

    async def close(self) -> None:
        try:
            await self._pubsub.unsubscribe(self._channel)
        finally:
            await self._pubsub.aclose()


class RedisClient:
    """
    Lease store over redis.asyncio. script_cache states whether the server keeps a script cache:
    registered scripts run via EVALSHA and reload themselves after a SCRIPT FLUSH. Pass False
    for proxies and cluster setups without one; every call then sends the full script via EVAL.
    """

    def __init__(
        self,
        client: redis.Redis | None = None,
        *,
        script_cache: bool | None = None,
        settings: MutexSettings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.client = client if client is not None else redis.from_url(
            settings.redis_url,
            decode_responses=True,
        )
        self.script_cache = settings.script_cache if script_cache is None else script_cache
        self._close_callbacks: list[Callable[[], Awaitable[None]]] = []
        self._release = self._renew = None
        if self.script_cache:
            self._release = self.client.register_script(RELEASE_SCRIPT)
            self._renew = self.client.register_script(RENEW_SCRIPT)

    async def _run_script(self, script: str, registered, keys: list[str], args: list) -> int:
        """Registered script (EVALSHA, reloaded on NOSCRIPT) when cached, plain EVAL otherwise."""
        if registered is None:
            return await self.client.eval(script, len(keys), *keys, *args)
        return await registered(keys=keys, args=args)

    async def set_if_absent(self, key: str, value: str, ttl: float | None) -> bool:
        """SET NX with PX expiry. Returns True if the key was created."""
        if ttl is None:
            return bool(await self.client.set(key, value, nx=True))
        return bool(await self.client.set(key, value, nx=True, px=_millis(ttl)))

    async def compare_delete_publish(self, key: str, value: str, channel: str) -> bool:
        """Delete key and publish the release only if it still holds value (atomic)."""
        result = await self._run_script(RELEASE_SCRIPT, self._release, [key, channel], [value])
        return bool(result)

    async def renew_if_owner(self, key: str, value: str, ttl: float) -> bool:
        """Reset the expiry of key only if it still holds value (atomic)."""
        result = await self._run_script(RENEW_SCRIPT, self._renew, [key], [value, _millis(ttl)])
        return bool(result)

    async def incr(self, key: str) -> int:
        """Increment key, return new value."""
        return await self.client.incr(key)

    async def subscribe(self, channel: str) -> RedisSubscription:
        subscription = RedisSubscription(self.client.pubsub(), channel)
        try:
            await subscription.confirm()
        except BaseException:
            await subscription.close()
            raise
        return subscription

    def add_close_callback(self, callback: Callable[[], Awaitable[None]]) -> None:
        if callback not in self._close_callbacks:
            self._close_callbacks.append(callback)

    async def aclose(self) -> None:
        """Run close callbacks (subscriber teardown), then close the connection pool."""
        callbacks, self._close_callbacks = self._close_callbacks, []
        for callback in callbacks:
            try:
                await callback()
            except Exception as e:
                logger.error("close_callback_failed", extra={"error": str(e)})
        await self.client.aclose()
