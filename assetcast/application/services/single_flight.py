"""Single-flight execution of periodic cycles."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator, Optional

from assetcast.domain.ports.distributed_lock import ILockProvider


class SingleFlightGuard:
    """
    Lets at most one run of a cycle proceed at a time.

    The guard belongs to the object that triggers the cycle (a worker task
    instance). It rejects overlapping runs inside the process and, when a
    lock provider is given, in other worker processes too. Rejected runs
    are skipped, never queued.

    The shared lock is leased for ``lease``. A run that outlives its lease
    stops excluding other workers, so callers pass the longest time a cycle
    may take.
    """

    def __init__(self, key: str) -> None:
        self.key = key
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @asynccontextmanager
    async def enter(
        self,
        lock_provider: Optional[ILockProvider] = None,
        lease: Optional[timedelta] = None,
    ) -> AsyncIterator[bool]:
        if self._running:
            yield False
            return

        self._running = True
        try:
            if lock_provider is None:
                yield True
                return
            async with lock_provider.hold(
                f"single-flight:{self.key}",
                blocking=False,
                lease=lease.total_seconds() if lease is not None else None,
            ) as acquired:
                yield acquired
        finally:
            self._running = False
