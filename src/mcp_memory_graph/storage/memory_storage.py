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
In-process storage backend.

Keeps each scope's state in a dict for the lifetime of the process. Used for
ephemeral sessions (``MCP_STORAGE_BACKEND=memory``) and as the test double
for the JSON backend. ``fail_writes`` / ``fail_reads`` simulate an
unavailable medium.
"""

import logging
from threading import Lock

from ..errors import StorageUnavailableError
from ..models.scope import Scope
from .base import ScopeState, ScopeStorage

logger = logging.getLogger(__name__)


class InMemoryStorage(ScopeStorage):
    """Dict-backed scope storage; states are copied on the way in and out."""

    def __init__(self):
        self._states: dict[str, ScopeState] = {}
        self._lock = Lock()
        self.fail_writes = False
        self.fail_reads = False
        self.persist_count = 0

    def load(self, scope: Scope) -> ScopeState:
        if self.fail_reads:
            raise StorageUnavailableError(f"In-memory store for {scope} is unavailable")
        with self._lock:
            state = self._states.get(scope.id)
            return state.copy() if state is not None else ScopeState()

    def persist(self, scope: Scope, state: ScopeState) -> None:
        if self.fail_writes:
            raise StorageUnavailableError(f"In-memory store for {scope} rejected the write")
        with self._lock:
            self._states[scope.id] = state.copy()
            self.persist_count += 1
        logger.debug(f"Stored scope {scope} in memory ({len(state.memories)} memories)")

    def location(self, scope: Scope) -> str:
        return f"memory://{scope.id}"

    def close(self) -> None:
        with self._lock:
            self._states.clear()
