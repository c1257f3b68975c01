import itertools
import os
import sys

# Keep tests away from the user's real memory store
os.environ.setdefault("MCP_STORAGE_BACKEND", "memory")

# Add src directory to Python path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

import pytest  # noqa: E402

from mcp_memory_graph.config import PathSettings, Settings, StorageSettings  # noqa: E402
from mcp_memory_graph.models.scope import GLOBAL_SCOPE  # noqa: E402
from mcp_memory_graph.registry import MemoryRegistry  # noqa: E402
from mcp_memory_graph.services.memory_manager import MemoryManager  # noqa: E402
from mcp_memory_graph.storage import InMemoryStorage, JsonFileStorage  # noqa: E402


@pytest.fixture
def memory_storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def manager(memory_storage) -> MemoryManager:
    """Loaded manager for the global scope over in-memory storage."""
    manager = MemoryManager(GLOBAL_SCOPE, memory_storage)
    manager.load()
    return manager


@pytest.fixture
def json_settings(tmp_path) -> Settings:
    """Settings pointing the JSON backend at a temporary base directory."""
    return Settings(
        paths=PathSettings(base_dir=tmp_path / "store"),
        storage=StorageSettings(backend="json", fsync=False),
    )


@pytest.fixture
def json_storage(tmp_path) -> JsonFileStorage:
    return JsonFileStorage(base_dir=tmp_path / "store", fsync=False)


@pytest.fixture
def registry(memory_storage) -> MemoryRegistry:
    return MemoryRegistry(memory_storage, Settings())


@pytest.fixture
def ticking_clock(monkeypatch):
    """Make time.time() advance one second per call, so save order is update order."""
    ticks = itertools.count(1_700_000_000)
    monkeypatch.setattr("mcp_memory_graph.models.memory.time.time", lambda: float(next(ticks)))
