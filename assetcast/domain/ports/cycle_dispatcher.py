"""Domain port for triggering background cycles on demand."""

from __future__ import annotations

from typing import Protocol


class ICycleDispatcher(Protocol):
    """Queues scheduler and migration cycles on the background workers."""

    async def dispatch_scheduler_cycle(self) -> str:
        """Queue a scheduler cycle and return the task id."""
        ...

    async def dispatch_migration_cycle(self) -> str:
        """Queue a history migration cycle and return the task id."""
        ...
