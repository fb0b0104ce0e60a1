"""Lock protocol: try-acquire, blocking acquire, release handles, fencing tokens, release notifications. Store injected."""

from redis_mutex.locking.blocking import (
    DEFAULT_POLLING_INTERVAL,
    AcquireState,
    BlockingAcquire,
    lock,
    locked,
)
from redis_mutex.locking.fencing import FencingTokenIssuer
from redis_mutex.locking.release import NO_FENCING_TOKEN, Lease, ReleaseHandle
from redis_mutex.locking.store import LeaseStore, Subscription
from redis_mutex.locking.subscriber import ReleaseSubscriber, SubscriberRegistry, Waiter, subscribers
from redis_mutex.locking.try_lock import DEFAULT_TIMEOUT, try_lock

__all__ = [
    "AcquireState",
    "BlockingAcquire",
    "DEFAULT_POLLING_INTERVAL",
    "DEFAULT_TIMEOUT",
    "FencingTokenIssuer",
    "Lease",
    "LeaseStore",
    "NO_FENCING_TOKEN",
    "ReleaseHandle",
    "ReleaseSubscriber",
    "SubscriberRegistry",
    "Subscription",
    "Waiter",
    "lock",
    "locked",
    "subscribers",
    "try_lock",
]
