# huddle/services/meeting_locks.py
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class MeetingLocks:
    """
    One asyncio.Lock per meeting id.

    Serializes mutations of a single meeting's attendance session inside this
    process; different meetings never wait on each other. A lock is dropped
    as soon as nobody holds or waits on it.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def lock_for(self, meeting_id: str) -> asyncio.Lock:
        lock = self._locks.get(meeting_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[meeting_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, meeting_id: str) -> AsyncIterator[None]:
        lock = self.lock_for(meeting_id)
        self._holders[meeting_id] = self._holders.get(meeting_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[meeting_id] -= 1
            if self._holders[meeting_id] == 0:
                del self._holders[meeting_id]
                del self._locks[meeting_id]


meeting_locks = MeetingLocks()


def get_meeting_locks() -> MeetingLocks:
    return meeting_locks
