"""Follow-up writes that must not undo a primary write that already succeeded."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from simplefit_mcp.simplefit.exceptions import SimpleFitError

logger = logging.getLogger(__name__)


@dataclass
class PendingWrite:
    name: str
    operation: Callable[[], Awaitable[None]]
    attempts: int = 0
    last_error: str | None = field(default=None)


class SecondaryWriteQueue:
    """Runs secondary writes once and keeps failures around for retry.

    A failed secondary write is logged and queued; it never raises into the
    caller whose primary write already committed.
    """

    def __init__(self, max_attempts: int = 3):
        self.max_attempts = max_attempts
        self._pending: list[PendingWrite] = []
        self._abandoned: list[PendingWrite] = []

    @property
    def pending(self) -> list[PendingWrite]:
        return list(self._pending)

    @property
    def abandoned(self) -> list[PendingWrite]:
        return list(self._abandoned)

    async def _attempt(self, write: PendingWrite) -> bool:
        write.attempts += 1
        try:
            await write.operation()
        except SimpleFitError as e:
            write.last_error = e.message
            logger.warning(
                "Secondary write %r failed (attempt %d): %s", write.name, write.attempts, e,
            )
            return False
        return True

    async def submit(self, name: str, operation: Callable[[], Awaitable[None]]) -> bool:
        write = PendingWrite(name=name, operation=operation)
        if await self._attempt(write):
            return True
        self._park(write)
        return False

    def _park(self, write: PendingWrite) -> None:
        if write.attempts >= self.max_attempts:
            logger.error("Giving up on secondary write %r: %s", write.name, write.last_error)
            self._abandoned.append(write)
        else:
            self._pending.append(write)

    async def retry_pending(self) -> int:
        """Retry every queued write once. Returns how many are still pending."""
        queued, self._pending = self._pending, []
        for write in queued:
            if not await self._attempt(write):
                self._park(write)
        return len(self._pending)
