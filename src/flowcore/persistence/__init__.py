"""Interrupt snapshot persistence backends."""

from __future__ import annotations

from flowcore.config import WorkflowSettings, get_settings
from flowcore.persistence.base import PersistenceBackend
from flowcore.persistence.database import DatabasePersistence
from flowcore.persistence.file import FilePersistence
from flowcore.persistence.memory import InMemoryPersistence


def create_persistence(settings: WorkflowSettings | None = None) -> PersistenceBackend:
    """Build the backend selected by ``persistence_backend``."""
    settings = settings or get_settings()
    if settings.persistence_backend == "file":
        return FilePersistence(settings.persistence_path)
    if settings.persistence_backend == "database":
        return DatabasePersistence.from_url(settings.database_url)
    return InMemoryPersistence()


__all__ = [
    "DatabasePersistence",
    "FilePersistence",
    "InMemoryPersistence",
    "PersistenceBackend",
    "create_persistence",
]
