"""Root-level pytest configuration for flowcore tests."""

from __future__ import annotations

import pytest

from flowcore.config import get_settings
from flowcore.exceptions import WorkflowInterrupt
from flowcore.interrupt import InterruptSnapshot
from flowcore.persistence import InMemoryPersistence
from flowcore.workflow import WorkflowState
from stubs import FirstEvent

pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Reload settings for every test so env overrides do not leak."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def persistence() -> InMemoryPersistence:
    """Fresh in-memory snapshot store."""
    return InMemoryPersistence()


@pytest.fixture
def snapshot() -> InterruptSnapshot:
    """Snapshot of a run suspended in the second node."""
    state = WorkflowState({"counter": 2, "tags": ("a", "b")})
    return WorkflowInterrupt(
        message="Need input",
        payload={"question": "continue?"},
        node_key="InterruptableNode",
        event=FirstEvent(message="First complete"),
        state=state,
        run_id="run-1",
        checkpoints={"expensive": 42},
    ).to_snapshot()
