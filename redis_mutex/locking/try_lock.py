"""Single non-blocking acquisition attempt."""

import logging

from redis_mutex.core.context import lock_name_ctx
from redis_mutex.domain.exceptions import InvalidLockOptionsError
from redis_mutex.domain.keys import LockKeys
from redis_mutex.locking.fencing import FencingTokenIssuer
from redis_mutex.locking.release import Lease, ReleaseHandle, new_lock_value, release_lease
from redis_mutex.locking.store import LeaseStore
from redis_mutex.locking.subscriber import subscribers

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def validate_lock_name(lock_name: str) -> None:
    if not isinstance(lock_name, str) or not lock_name:
        raise InvalidLockOptionsError("Lock name must be a non-empty string")


def validate_timeout(timeout: float | None, allow_unlimited_lease: bool) -> None:
    if timeout is None:
        if not allow_unlimited_lease:
            raise InvalidLockOptionsError(
                "timeout=None leaves the lock held forever if its owner crashes; "
                "pass allow_unlimited_lease=True to accept that"
            )
        return
    if timeout <= 0:
        raise InvalidLockOptionsError(f"timeout must be positive, got {timeout}")


async def try_lock(
    store: LeaseStore,
    lock_name: str,
    *,
    timeout: float | None = DEFAULT_TIMEOUT,
    allow_unlimited_lease: bool = False,
    keys: LockKeys | None = None,
) -> tuple[bool, ReleaseHandle]:
    """
    Try to acquire the lock once. Returns (acquired, release handle).

    The lease expires after `timeout` seconds unless refreshed, so a crashed holder
    cannot keep the lock. On contention the handle is a no-op with fencing_token -1.
    Store errors propagate; a failed attempt never leaves a key behind.
    """
    validate_lock_name(lock_name)
    validate_timeout(timeout, allow_unlimited_lease)
    keys = keys or LockKeys.from_settings()

    ctx_token = lock_name_ctx.set(lock_name)
    try:
        await subscribers.get(store, keys.release_channel).ensure_started()

        lease = Lease(
            lock_name=lock_name,
            key=keys.lock_key(lock_name),
            value=new_lock_value(),
            channel=keys.release_channel,
            timeout=timeout,
        )
        if not await store.set_if_absent(lease.key, lease.value, timeout):
            logger.debug("lock_contended", extra={"lock_key": lease.key})
            return False, ReleaseHandle.not_acquired()

        try:
            fencing_token = await FencingTokenIssuer(store, keys.fencing_counter).issue()
        except BaseException:
            await release_lease(store, lease)
            raise

        logger.info(
            "lock_acquired",
            extra={"lock_key": lease.key, "fencing_token": fencing_token},
        )
        return True, ReleaseHandle(store, lease, fencing_token)
    finally:
        lock_name_ctx.reset(ctx_token)
