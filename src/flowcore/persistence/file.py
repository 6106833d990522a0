"""Filesystem snapshot storage, one JSON file per run."""

from __future__ import annotations

import asyncio
import os
import re
import tempfile
from pathlib import Path

import structlog
from pydantic import ValidationError

from flowcore.exceptions import PersistenceError, SnapshotNotFoundError
from flowcore.interrupt.snapshot import InterruptSnapshot
from flowcore.persistence.base import PersistenceBackend

logger = structlog.get_logger()

_SAFE_RUN_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


class FilePersistence(PersistenceBackend):
    """Stores each snapshot as ``<storage_path>/<run_id>.json``.

    Writes go to a temporary file that replaces the target atomically, and
    operations on the same run id are serialized.
    """

    def __init__(self, storage_path: Path | str) -> None:
        self._storage_path = Path(storage_path)
        self._storage_path.mkdir(parents=True, exist_ok=True)
        self._locks: dict[str, asyncio.Lock] = {}

        logger.info("file_persistence_initialized", storage_path=str(self._storage_path))

    def _get_snapshot_path(self, run_id: str) -> Path:
        if not _SAFE_RUN_ID.match(run_id) or run_id in {".", ".."}:
            raise PersistenceError(f"Invalid run id for file storage: {run_id!r}")
        return self._storage_path / f"{run_id}.json"

    def _lock(self, run_id: str) -> asyncio.Lock:
        return self._locks.setdefault(run_id, asyncio.Lock())

    def _write_atomic(self, path: Path, content: str) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def save(self, run_id: str, snapshot: InterruptSnapshot) -> None:
        path = self._get_snapshot_path(run_id)
        async with self._lock(run_id):
            try:
                await asyncio.to_thread(
                    self._write_atomic, path, snapshot.model_dump_json(indent=2)
                )
            except OSError as e:
                logger.error("snapshot_save_failed", run_id=run_id, error=str(e))
                raise PersistenceError(f"Failed to save snapshot for {run_id}: {e}") from e

        logger.debug("snapshot_saved", run_id=run_id, backend="file", path=str(path))

    async def load(self, run_id: str) -> InterruptSnapshot:
        path = self._get_snapshot_path(run_id)
        async with self._lock(run_id):
            try:
                content = await asyncio.to_thread(path.read_text, encoding="utf-8")
            except FileNotFoundError as e:
                raise SnapshotNotFoundError(run_id) from e
            except OSError as e:
                raise PersistenceError(f"Failed to read snapshot for {run_id}: {e}") from e

        try:
            return InterruptSnapshot.model_validate_json(content)
        except ValidationError as e:
            raise PersistenceError(f"Corrupted snapshot for {run_id}: {e}") from e

    async def delete(self, run_id: str) -> None:
        path = self._get_snapshot_path(run_id)
        async with self._lock(run_id):
            await asyncio.to_thread(path.unlink, missing_ok=True)
        self._locks.pop(run_id, None)
        logger.debug("snapshot_deleted", run_id=run_id, backend="file")
