"""
Blocking acquisition: ATTEMPTING -> WAITING -> (ATTEMPTING | SUCCEEDED | FAILED).

A waiter re-attempts when a release notification for its lock arrives, when the polling
interval passes (crashed holders never publish a release), or fails at fail_after.
Polling and lease timeout are a safety net; application logic should not rely on them.
"""

import asyncio
import inspect
import logging
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, Callable

from redis_mutex.core.context import lock_name_ctx
from redis_mutex.domain.exceptions import InvalidLockOptionsError, LockTimeoutError
from redis_mutex.domain.keys import LockKeys
from redis_mutex.locking.release import ReleaseHandle
from redis_mutex.locking.store import LeaseStore
from redis_mutex.locking.subscriber import Waiter, subscribers
from redis_mutex.locking.try_lock import (
    DEFAULT_TIMEOUT,
    try_lock,
    validate_lock_name,
    validate_timeout,
)

logger = logging.getLogger(__name__)

DEFAULT_POLLING_INTERVAL = 10.0


class AcquireState(str, Enum):
    ATTEMPTING = "attempting"
    WAITING = "waiting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class BlockingAcquire:
    """
    One blocking acquisition with its own waiter and deadline. Waiter registration is
    removed on every exit: success, deadline, store error or cancellation.
    """

    def __init__(
        self,
        store: LeaseStore,
        lock_name: str,
        *,
        timeout: float | None = DEFAULT_TIMEOUT,
        polling_interval: float | None = DEFAULT_POLLING_INTERVAL,
        fail_after: float | None = None,
        on_fail: Callable[[], Any] | None = None,
        allow_unlimited_lease: bool = False,
        allow_no_polling: bool = False,
        keys: LockKeys | None = None,
    ) -> None:
        validate_lock_name(lock_name)
        validate_timeout(timeout, allow_unlimited_lease)
        if polling_interval is None:
            if not allow_no_polling:
                raise InvalidLockOptionsError(
                    "polling_interval=None relies on release notifications alone; "
                    "pass allow_no_polling=True to accept that"
                )
        elif polling_interval <= 0:
            raise InvalidLockOptionsError(f"polling_interval must be positive, got {polling_interval}")
        if fail_after is not None and fail_after <= 0:
            raise InvalidLockOptionsError(f"fail_after must be positive, got {fail_after}")

        self._store = store
        self._lock_name = lock_name
        self._timeout = timeout
        self._allow_unlimited_lease = allow_unlimited_lease
        self._polling_interval = polling_interval
        self._fail_after = fail_after
        self._on_fail = on_fail
        self._keys = keys or LockKeys.from_settings()
        self._state = AcquireState.ATTEMPTING
        self.attempts = 0

    @property
    def state(self) -> AcquireState:
        return self._state

    async def run(self) -> ReleaseHandle:
        subscriber = subscribers.get(self._store, self._keys.release_channel)
        loop = asyncio.get_running_loop()
        deadline = None if self._fail_after is None else loop.time() + self._fail_after

        ctx_token = lock_name_ctx.set(self._lock_name)
        # Registered before the first attempt so a release racing it still wakes us.
        waiter = subscriber.register(self._keys.lock_key(self._lock_name))
        try:
            while True:
                self._state = AcquireState.ATTEMPTING
                self.attempts += 1
                acquired, release = await try_lock(
                    self._store,
                    self._lock_name,
                    timeout=self._timeout,
                    allow_unlimited_lease=self._allow_unlimited_lease,
                    keys=self._keys,
                )
                if acquired:
                    self._state = AcquireState.SUCCEEDED
                    return release
                self._state = AcquireState.WAITING
                if not await self._wait(waiter, deadline, loop):
                    break
        finally:
            subscriber.unregister(waiter)
            lock_name_ctx.reset(ctx_token)

        self._state = AcquireState.FAILED
        logger.warning(
            "lock_wait_timeout",
            extra={
                "lock_name": self._lock_name,
                "fail_after": self._fail_after,
                "attempts": self.attempts,
            },
        )
        await self._notify_failure()
        raise LockTimeoutError(self._lock_name, self._fail_after)

    async def _wait(self, waiter: Waiter, deadline: float | None, loop) -> bool:
        """Suspend until a release, the next poll, or the deadline. False once past the deadline."""
        timeout = self._polling_interval
        if deadline is not None:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return False
            timeout = remaining if timeout is None else min(timeout, remaining)
        await waiter.wait(timeout)
        return deadline is None or loop.time() < deadline

    async def _notify_failure(self) -> None:
        if self._on_fail is None:
            return
        try:
            result = self._on_fail()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("on_fail_callback_failed", extra={"lock_name": self._lock_name})


async def lock(
    store: LeaseStore,
    lock_name: str,
    *,
    timeout: float | None = DEFAULT_TIMEOUT,
    polling_interval: float | None = DEFAULT_POLLING_INTERVAL,
    fail_after: float | None = None,
    on_fail: Callable[[], Any] | None = None,
    allow_unlimited_lease: bool = False,
    allow_no_polling: bool = False,
    keys: LockKeys | None = None,
) -> ReleaseHandle:
    """
    Acquire the lock, waiting until it is released if it is held. Returns the release handle.

    With fail_after set, gives up after that many seconds: on_fail is called once and
    LockTimeoutError is raised. Without it, waits indefinitely.
    """
    acquisition = BlockingAcquire(
        store,
        lock_name,
        timeout=timeout,
        polling_interval=polling_interval,
        fail_after=fail_after,
        on_fail=on_fail,
        allow_unlimited_lease=allow_unlimited_lease,
        allow_no_polling=allow_no_polling,
        keys=keys,
    )
    return await acquisition.run()


@asynccontextmanager
async def locked(store: LeaseStore, lock_name: str, **options: Any) -> AsyncIterator[ReleaseHandle]:
    """Hold the lock for the body of an `async with` block."""
    release = await lock(store, lock_name, **options)
    try:
        yield release
    finally:
        await release()
