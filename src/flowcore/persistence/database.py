"""
Database Snapshot Persistence

SQLAlchemy async storage of interrupt snapshots in a ``workflow_interrupts``
table, using JSONB on PostgreSQL and JSON elsewhere.
"""

from __future__ import annotations

from datetime import UTC, datetime

import structlog
from sqlalchemy import JSON, Column, DateTime, String, delete, select
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from flowcore.exceptions import PersistenceError, SnapshotNotFoundError
from flowcore.interrupt.snapshot import InterruptSnapshot
from flowcore.persistence.base import PersistenceBackend

logger = structlog.get_logger()

Base = declarative_base()

JSONType = JSON().with_variant(JSONB(), "postgresql")


class WorkflowInterruptDB(Base):
    """Snapshot row of a suspended workflow run."""

    __tablename__ = "workflow_interrupts"

    run_id = Column(String(255), primary_key=True, index=True)
    node_key = Column(String(255), nullable=False)
    snapshot = Column(JSONType, nullable=False)

    created_at = Column(
        DateTime, nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at = Column(
        DateTime, nullable=False, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC)
    )

    def __repr__(self) -> str:
        return f"<WorkflowInterruptDB(run_id={self.run_id}, node_key={self.node_key})>"


class DatabasePersistence(PersistenceBackend):
    """Snapshot storage backed by an async SQLAlchemy session factory."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        engine: AsyncEngine | None = None,
    ) -> None:
        """
        Initialize database persistence.

        Args:
            session_factory: Factory producing async sessions
            engine: Engine on which the snapshot table is created before
                first use; when omitted the table must already exist
        """
        self._session_factory = session_factory
        self._engine = engine
        self._schema_ready = engine is None

    @classmethod
    def from_url(cls, database_url: str, **engine_kwargs) -> DatabasePersistence:
        """Create a backend with its own engine for ``database_url``."""
        engine = create_async_engine(database_url, **engine_kwargs)
        logger.info("database_persistence_initialized", url=database_url.split("@")[-1])
        return cls(async_sessionmaker(engine, expire_on_commit=False), engine=engine)

    @staticmethod
    async def create_tables(engine: AsyncEngine) -> None:
        """Create the snapshot table if it does not exist."""
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def _ensure_schema(self) -> None:
        if not self._schema_ready and self._engine is not None:
            await self.create_tables(self._engine)
            self._schema_ready = True

    async def save(self, run_id: str, snapshot: InterruptSnapshot) -> None:
        await self._ensure_schema()
        data = snapshot.model_dump(mode="json")
        try:
            async with self._session_factory() as session, session.begin():
                row = await session.get(WorkflowInterruptDB, run_id)
                if row is None:
                    session.add(
                        WorkflowInterruptDB(
                            run_id=run_id, node_key=snapshot.node_key, snapshot=data
                        )
                    )
                else:
                    row.node_key = snapshot.node_key
                    row.snapshot = data
        except SQLAlchemyError as e:
            logger.error("snapshot_save_failed", run_id=run_id, error=str(e))
            raise PersistenceError(f"Failed to save snapshot for {run_id}: {e}") from e

        logger.debug("snapshot_saved", run_id=run_id, backend="database")

    async def load(self, run_id: str) -> InterruptSnapshot:
        await self._ensure_schema()
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(WorkflowInterruptDB.snapshot).where(
                        WorkflowInterruptDB.run_id == run_id
                    )
                )
                data = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load snapshot for {run_id}: {e}") from e

        if data is None:
            raise SnapshotNotFoundError(run_id)
        return InterruptSnapshot.model_validate(data)

    async def delete(self, run_id: str) -> None:
        await self._ensure_schema()
        try:
            async with self._session_factory() as session, session.begin():
                await session.execute(
                    delete(WorkflowInterruptDB).where(WorkflowInterruptDB.run_id == run_id)
                )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to delete snapshot for {run_id}: {e}") from e

        logger.debug("snapshot_deleted", run_id=run_id, backend="database")
