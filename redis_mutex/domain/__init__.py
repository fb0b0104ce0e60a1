"""Domain layer: key layout and error taxonomy. No Redis imports."""

from redis_mutex.domain.exceptions import InvalidLockOptionsError, LockTimeoutError, MutexError
from redis_mutex.domain.keys import LockKeys

__all__ = [
    "InvalidLockOptionsError",
    "LockKeys",
    "LockTimeoutError",
    "MutexError",
]
