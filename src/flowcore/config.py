"""Configuration settings for flowcore."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WorkflowSettings(BaseSettings):
    """Workflow engine settings loaded from ``FLOWCORE_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FLOWCORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Minimum level emitted by flowcore loggers",
    )

    # Persistence
    persistence_backend: Literal["memory", "file", "database"] = Field(
        default="memory",
        description="Backend used to store interrupt snapshots",
    )
    persistence_path: str = Field(
        default=".flowcore/interrupts",
        description="Directory for the file persistence backend",
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///flowcore.db",
        description="SQLAlchemy async URL for the database persistence backend",
    )
    delete_snapshot_on_complete: bool = Field(
        default=True,
        description="Delete a run's snapshot once it completes",
    )

    # Execution
    executor_max_concurrency: int | None = Field(
        default=None,
        ge=1,
        description="Maximum concurrently running workflows per executor",
    )
    run_id_prefix: str = Field(
        default="workflow_",
        description="Prefix for generated run ids",
    )


@lru_cache
def get_settings() -> WorkflowSettings:
    """Get cached settings instance."""
    return WorkflowSettings()
