"""
Per-identity async locks.

Mutations on the same identity set are serialized so a refresh cannot
observe a half-applied batch. Locks for a batch are taken in sorted order,
which keeps two overlapping batches from deadlocking. Reads never take a
lock.

Locks live in a WeakValueDictionary: an identity nobody is holding or
waiting on costs nothing.
"""
import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, List


class IdentityLocks:
    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, identity: str) -> asyncio.Lock:
        lock = self._locks.get(identity)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[identity] = lock
        return lock

    def is_locked(self, identity: str) -> bool:
        lock = self._locks.get(identity)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, identities: Iterable[str]) -> AsyncIterator[List[str]]:
        """Acquire the locks for every distinct identity; yields them sorted."""
        ordered = sorted(set(identities))
        held: List[asyncio.Lock] = []
        try:
            for identity in ordered:
                lock = self._lock_for(identity)
                await lock.acquire()
                held.append(lock)
            yield ordered
        finally:
            for lock in reversed(held):
                lock.release()
