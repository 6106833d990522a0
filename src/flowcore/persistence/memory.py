"""In-process snapshot storage."""

from __future__ import annotations

from typing import Any

import structlog

from flowcore.exceptions import SnapshotNotFoundError
from flowcore.interrupt.snapshot import InterruptSnapshot
from flowcore.persistence.base import PersistenceBackend

logger = structlog.get_logger()


class InMemoryPersistence(PersistenceBackend):
    """Keeps snapshots as JSON-mode dumps in a dict.

    Loaded snapshots never alias stored data.
    """

    def __init__(self) -> None:
        self._snapshots: dict[str, dict[str, Any]] = {}

    async def save(self, run_id: str, snapshot: InterruptSnapshot) -> None:
        """Store a snapshot, replacing any earlier one for the run.

        Args:
            run_id: Id of the suspended run.
            snapshot: Snapshot to store. It is dumped to JSON-mode data so
                later changes to the object do not leak into storage.
        """
        self._snapshots[run_id] = snapshot.model_dump(mode="json")
        logger.debug("snapshot_saved", run_id=run_id, backend="memory")

    async def load(self, run_id: str) -> InterruptSnapshot:
        """Rebuild the stored snapshot of a run.

        Args:
            run_id: Id of the suspended run.

        Returns:
            A fresh ``InterruptSnapshot`` validated from the stored dump.

        Raises:
            SnapshotNotFoundError: If nothing is stored for ``run_id``.
        """
        data = self._snapshots.get(run_id)
        if data is None:
            raise SnapshotNotFoundError(run_id)
        return InterruptSnapshot.model_validate(data)

    async def delete(self, run_id: str) -> None:
        """Forget the snapshot of a run.

        Args:
            run_id: Id of the run. Unknown ids are ignored.
        """
        if self._snapshots.pop(run_id, None) is not None:
            logger.debug("snapshot_deleted", run_id=run_id, backend="memory")

    def __len__(self) -> int:
        """Return the number of stored snapshots."""
        return len(self._snapshots)
