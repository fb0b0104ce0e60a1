"""Store operations the lock protocol relies on. Injected; RedisClient is the production implementation."""

from typing import AsyncIterator, Awaitable, Callable, Protocol


class Subscription(Protocol):
    """A confirmed channel subscription on a connection dedicated to it."""

    def messages(self) -> AsyncIterator[str]: ...
    async def close(self) -> None: ...


class LeaseStore(Protocol):
    """
    Atomic primitives of the key-value store. Durations are seconds; None means no expiry.
    Implementations must make each call atomic on the server.
    """

    async def set_if_absent(self, key: str, value: str, ttl: float | None) -> bool: ...
    async def compare_delete_publish(self, key: str, value: str, channel: str) -> bool: ...
    async def renew_if_owner(self, key: str, value: str, ttl: float) -> bool: ...
    async def incr(self, key: str) -> int: ...
    async def subscribe(self, channel: str) -> Subscription: ...
    def add_close_callback(self, callback: Callable[[], Awaitable[None]]) -> None: ...
