# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Storage backend factory for the MCP Memory Graph.

Creates the scope storage backend selected by ``MCP_STORAGE_BACKEND``.
"""

import logging

from ..config import Settings
from .base import ScopeStorage
from .json_storage import JsonFileStorage
from .memory_storage import InMemoryStorage

logger = logging.getLogger(__name__)


def create_storage_instance(config: Settings | None = None) -> ScopeStorage:
    """
    Create the configured scope storage backend.

    Args:
        config: Settings to read; defaults to the process-wide settings.

    Returns:
        A JsonFileStorage (default) or InMemoryStorage instance
    """
    if config is None:
        from ..config import settings as config

    if config.storage.backend == "memory":
        logger.info("Using in-memory scope storage (nothing is written to disk)")
        return InMemoryStorage()

    storage = JsonFileStorage(
        base_dir=config.paths.base_dir,
        project_dir_name=config.paths.project_dir_name,
        file_name=config.paths.file_name,
        fsync=config.storage.fsync,
        indent=config.storage.indent,
    )
    logger.info(f"Using JSON scope storage (global scope under {storage.base_dir})")
    return storage
