"""Key layout in the store: every key and the release channel share one namespace prefix."""

from dataclasses import dataclass

from redis_mutex.config.settings import MutexSettings, get_settings

LOCK_KEY_PART = "lock-"
FENCING_COUNTER_PART = "fencing-token"
RELEASE_CHANNEL_PART = "locks-releases"


@dataclass(frozen=True)
class LockKeys:
    prefix: str

    @classmethod
    def from_settings(cls, settings: MutexSettings | None = None) -> "LockKeys":
        return cls(prefix=(settings or get_settings()).key_prefix)

    def lock_key(self, lock_name: str) -> str:
        return f"{self.prefix}{LOCK_KEY_PART}{lock_name}"

    @property
    def fencing_counter(self) -> str:
        return f"{self.prefix}{FENCING_COUNTER_PART}"

    @property
    def release_channel(self) -> str:
        return f"{self.prefix}{RELEASE_CHANNEL_PART}"
