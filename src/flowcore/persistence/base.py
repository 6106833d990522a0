"""Persistence contract for interrupt snapshots."""

from __future__ import annotations

from abc import ABC, abstractmethod

from flowcore.exceptions import SnapshotNotFoundError
from flowcore.interrupt.snapshot import InterruptSnapshot


class PersistenceBackend(ABC):
    """Stores at most one snapshot per workflow run id.

    Saving a snapshot for a run id replaces the previous one.
    """

    @abstractmethod
    async def save(self, run_id: str, snapshot: InterruptSnapshot) -> None:
        """Store the snapshot of a suspended run."""

    @abstractmethod
    async def load(self, run_id: str) -> InterruptSnapshot:
        """Load the snapshot of a suspended run.

        Raises:
            SnapshotNotFoundError: If nothing is stored for ``run_id``
        """

    @abstractmethod
    async def delete(self, run_id: str) -> None:
        """Remove the snapshot of a run; missing snapshots are ignored."""

    async def exists(self, run_id: str) -> bool:
        try:
            await self.load(run_id)
        except SnapshotNotFoundError:
            return False
        return True
