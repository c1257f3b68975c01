"""
Scope registry for the MCP Memory Graph.

Maps each resolved scope to its single ``MemoryManager``. The registry is
created once by ``create_registry`` and handed to tool handlers explicitly
(through the FastMCP lifespan context), so there is no process-global
lookup and tests can build as many isolated registries as they need.
"""

import logging
from pathlib import Path
from threading import Lock

from .config import Settings
from .errors import StorageUnavailableError
from .models.scope import Scope, resolve_scope
from .services.memory_manager import MemoryManager
from .storage.base import ScopeStorage
from .storage.factory import create_storage_instance

logger = logging.getLogger(__name__)


class MemoryRegistry:
    """Owns one MemoryManager per scope, created and loaded on first use."""

    def __init__(self, storage: ScopeStorage, config: Settings | None = None):
        if config is None:
            from .config import settings as config

        self.storage = storage
        self._config = config
        self._managers: dict[Scope, MemoryManager] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._managers)

    def scopes(self) -> list[Scope]:
        """Scopes with a loaded manager, in creation order."""
        return list(self._managers)

    def get(self, project_path: str | Path | None = None) -> MemoryManager:
        """Get or create the manager for a project path (None = global scope).

        Idempotent: every spelling of the same directory returns the same
        manager. A scope whose storage cannot be read is not cached, so a
        later call retries the load.

        Raises:
            StorageUnavailableError: the scope's durable unit is unreadable
        """
        scope = resolve_scope(project_path)

        # Fast path - already loaded
        manager = self._managers.get(scope)
        if manager is not None:
            return manager

        with self._lock:
            # Double-check after acquiring lock
            manager = self._managers.get(scope)
            if manager is not None:
                return manager

            manager = MemoryManager(
                scope,
                self.storage,
                ranking=self._config.ranking,
                graph_settings=self._config.graph,
            )
            manager.load()
            self._managers[scope] = manager
            logger.info(f"Registered scope {scope} ({len(self._managers)} active)")
            return manager

    def flush(self) -> int:
        """Persist pending access statistics of every scope. Returns scopes written."""
        written = 0
        for manager in list(self._managers.values()):
            try:
                if manager.flush():
                    written += 1
            except StorageUnavailableError as e:
                logger.error(f"Failed to flush scope {manager.scope}: {e}")
        return written

    def close(self) -> None:
        """Flush every scope and release the storage backend.

        Safe to call more than once.
        """
        with self._lock:
            written = self.flush()
            self._managers.clear()
            self.storage.close()
        logger.info(f"Memory registry closed ({written} scope(s) flushed)")


def create_registry(config: Settings | None = None) -> MemoryRegistry:
    """Build a registry over the storage backend selected by ``config``."""
    if config is None:
        from .config import settings as config

    return MemoryRegistry(create_storage_instance(config), config)
