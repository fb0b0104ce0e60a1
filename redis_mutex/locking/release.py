"""Release protocol: atomic compare-delete-publish, at most once per acquisition, never raising."""

import logging
import secrets
from dataclasses import dataclass

from redis_mutex.locking.store import LeaseStore

logger = logging.getLogger(__name__)

NO_FENCING_TOKEN = -1
LOCK_VALUE_BYTES = 50


def new_lock_value() -> str:
    """Fresh ownership proof for one acquisition attempt."""
    return secrets.token_hex(LOCK_VALUE_BYTES)


@dataclass(frozen=True)
class Lease:
    """What a successful acquisition wrote to the store."""

    lock_name: str
    key: str
    value: str
    channel: str
    timeout: float | None


async def release_lease(store: LeaseStore, lease: Lease) -> bool:
    """
    Delete the lock key if it still holds our value and announce the release.
    Store errors are logged, not raised: the lease expires on its own and the
    script never touches a key owned by someone else.
    """
    try:
        released = await store.compare_delete_publish(lease.key, lease.value, lease.channel)
    except Exception as e:
        logger.error(
            "lock_release_failed",
            extra={"lock_name": lease.lock_name, "lock_key": lease.key, "error": str(e)},
        )
        return False
    logger.debug(
        "lock_released",
        extra={"lock_name": lease.lock_name, "lock_key": lease.key, "owned": released},
    )
    return released


class ReleaseHandle:
    """
    Returned by every acquisition attempt. Await it to release; calling it again,
    or on a failed attempt, does nothing. fencing_token is -1 when not acquired.
    """

    def __init__(
        self,
        store: LeaseStore | None = None,
        lease: Lease | None = None,
        token: int | None = None,
    ) -> None:
        self._store = store
        self._lease = lease
        self._token = token
        self._released = False

    @classmethod
    def not_acquired(cls) -> "ReleaseHandle":
        return cls()

    @property
    def acquired(self) -> bool:
        return self._lease is not None

    @property
    def released(self) -> bool:
        return self._released

    @property
    def token(self) -> int | None:
        return self._token

    @property
    def fencing_token(self) -> int:
        return NO_FENCING_TOKEN if self._token is None else self._token

    async def __call__(self) -> None:
        if self._lease is None or self._released:
            return
        # Flip before the round trip so concurrent calls send one release.
        self._released = True
        await release_lease(self._store, self._lease)

    async def refresh_timeout(self) -> bool:
        """Restart the lease from now if we still own the lock. Returns True if renewed."""
        lease = self._lease
        if lease is None or self._released or lease.timeout is None:
            logger.debug("lock_refresh_skipped", extra={"lock_name": lease.lock_name if lease else None})
            return False
        renewed = await self._store.renew_if_owner(lease.key, lease.value, lease.timeout)
        if not renewed:
            logger.debug("lock_refresh_skipped", extra={"lock_name": lease.lock_name, "lock_key": lease.key})
        return renewed

    def __repr__(self) -> str:
        name = self._lease.lock_name if self._lease else None
        return f"ReleaseHandle(lock_name={name!r}, fencing_token={self.fencing_token}, released={self._released})"
