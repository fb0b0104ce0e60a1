"""Fencing tokens: one store-wide counter, bumped once per successful acquisition."""

from redis_mutex.locking.store import LeaseStore


class FencingTokenIssuer:
    """
    Tokens increase strictly in issuance order across all lock names. They are not
    scoped to a single lock; downstream writers compare them only for staleness.
    """

    def __init__(self, store: LeaseStore, counter_key: str) -> None:
        self._store = store
        self._counter_key = counter_key

    async def issue(self) -> int:
        return await self._store.incr(self._counter_key)
