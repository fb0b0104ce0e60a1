"""Redis mutex: leased, fenced, pub/sub-woken distributed locks over redis.asyncio."""

from redis_mutex.config.logging import configure_logging
from redis_mutex.config.settings import MutexSettings, get_settings
from redis_mutex.domain import InvalidLockOptionsError, LockKeys, LockTimeoutError, MutexError
from redis_mutex.infrastructure.cache.redis_client import RedisClient
from redis_mutex.locking import (
    DEFAULT_POLLING_INTERVAL,
    DEFAULT_TIMEOUT,
    NO_FENCING_TOKEN,
    ReleaseHandle,
    lock,
    locked,
    try_lock,
)

__all__ = [
    "DEFAULT_POLLING_INTERVAL",
    "DEFAULT_TIMEOUT",
    "InvalidLockOptionsError",
    "LockKeys",
    "LockTimeoutError",
    "MutexError",
    "MutexSettings",
    "NO_FENCING_TOKEN",
    "RedisClient",
    "ReleaseHandle",
    "configure_logging",
    "get_settings",
    "lock",
    "locked",
    "try_lock",
]
