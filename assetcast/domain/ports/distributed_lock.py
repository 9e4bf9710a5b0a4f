"""Domain port for named advisory locks shared across workers."""

from __future__ import annotations

from typing import AsyncContextManager, Optional, Protocol


class ILockProvider(Protocol):
    """Named mutual exclusion between the scheduler and the migrator."""

    def hold(
        self, name: str, *, blocking: bool = True, lease: Optional[float] = None
    ) -> AsyncContextManager[bool]:
        """
        Hold the lock ``name`` for the duration of the ``async with`` block.

        A blocking hold yields True or raises ``LockError`` when the lock
        cannot be taken in time. A non-blocking hold yields False instead of
        waiting when another owner has it. Failing to release raises
        ``LockError``.

        ``lease`` is the number of seconds after which a holder that never
        released loses the lock. Holders of long cycles pass a lease longer
        than the cycle; the provider default applies otherwise.
        """
        ...
