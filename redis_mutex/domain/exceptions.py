"""Lock errors. Contention is not an error: try_lock reports it as a False outcome."""


class MutexError(Exception):
    """Base for all redis_mutex errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidLockOptionsError(MutexError):
    """Raised when lock options are rejected before any store round trip."""


class LockTimeoutError(MutexError):
    """Raised when a blocking acquire does not get the lock before fail_after."""

    def __init__(self, lock_name: str, fail_after: float) -> None:
        self.lock_name = lock_name
        self.fail_after = fail_after
        super().__init__(
            f'Lock "{lock_name}" could not be acquired after {fail_after} seconds'
        )
