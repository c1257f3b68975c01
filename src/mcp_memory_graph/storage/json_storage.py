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
JSON file storage backend.

One JSON document per scope:

    Global scope:   <base_dir>/global/memories.json
    Project scope:  <project>/.memory-graph/memories.json

Writes go to a temporary file in the target directory which then replaces
the document with ``os.replace``, so an interrupted process leaves either the
old document or the new one on disk.
"""

import contextlib
import logging
import os
import tempfile
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from ..errors import StorageUnavailableError
from ..models.memory import Memory, Relation
from ..models.scope import Scope
from .base import ScopeState, ScopeStorage

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class ScopeDocument(BaseModel):
    """On-disk layout of one scope."""

    version: int = SCHEMA_VERSION
    scope: str
    memories: list[Memory] = Field(default_factory=list)
    relations: list[Relation] = Field(default_factory=list)


class JsonFileStorage(ScopeStorage):
    """Scope storage backed by one atomically-replaced JSON file per scope."""

    def __init__(
        self,
        base_dir: Path,
        project_dir_name: str = ".memory-graph",
        file_name: str = "memories.json",
        fsync: bool = True,
        indent: int = 2,
    ):
        self.base_dir = Path(base_dir).expanduser()
        self.project_dir_name = project_dir_name
        self.file_name = file_name
        self.fsync = fsync
        self.indent = indent

    def path_for(self, scope: Scope) -> Path:
        """Document path for a scope."""
        if scope.is_global:
            return self.base_dir / "global" / self.file_name
        return scope.path / self.project_dir_name / self.file_name

    def location(self, scope: Scope) -> str:
        return str(self.path_for(scope))

    # ── Read ─────────────────────────────────────────────────────────────

    def load(self, scope: Scope) -> ScopeState:
        path = self.path_for(scope)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug(f"No document for scope {scope} at {path}, starting empty")
            return ScopeState()
        except OSError as e:
            raise StorageUnavailableError(f"Cannot read memory store {path}: {e}") from e
        except UnicodeDecodeError as e:
            raise StorageUnavailableError(f"Memory store {path} is unreadable (not UTF-8: {e.reason})") from e

        try:
            document = ScopeDocument.model_validate_json(raw)
        except ValidationError as e:
            raise StorageUnavailableError(
                f"Memory store {path} is unreadable ({e.error_count()} invalid field(s))"
            ) from e

        if document.version != SCHEMA_VERSION:
            raise StorageUnavailableError(
                f"Memory store {path} has unsupported version {document.version} (expected {SCHEMA_VERSION})"
            )

        return self._to_state(document, path)

    @staticmethod
    def _to_state(document: ScopeDocument, path: Path) -> ScopeState:
        """Build in-memory state, dropping records that break scope invariants."""
        memories: dict[str, Memory] = {}
        for memory in document.memories:
            if memory.key in memories:
                logger.warning(f"Duplicate key '{memory.key}' in {path}; keeping the last record")
            memories[memory.key] = memory

        relations: dict[tuple[str, str, str], Relation] = {}
        for relation in document.relations:
            if relation.source_key not in memories or relation.target_key not in memories:
                logger.warning(
                    f"Dropping dangling relation {relation.source_key} -> {relation.target_key} in {path}"
                )
                continue
            relations[relation.triple] = relation

        return ScopeState(memories=memories, relations=list(relations.values()))

    # ── Write ────────────────────────────────────────────────────────────

    def persist(self, scope: Scope, state: ScopeState) -> None:
        path = self.path_for(scope)
        document = ScopeDocument(
            scope=scope.id,
            memories=sorted(state.memories.values(), key=lambda m: m.key),
            relations=state.relations,
        )
        payload = document.model_dump_json(indent=self.indent or None)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._atomic_write(path, payload)
        except OSError as e:
            raise StorageUnavailableError(f"Cannot write memory store {path}: {e}") from e

        logger.debug(
            f"Persisted scope {scope}: {len(state.memories)} memories, {len(state.relations)} relations -> {path}"
        )

    def _atomic_write(self, path: Path, payload: str) -> None:
        """Write to a sibling temp file, then replace ``path`` in one step."""
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                if self.fsync:
                    os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise

        if self.fsync and os.name == "posix":
            # The document is already replaced; a failed directory sync only weakens durability
            try:
                dir_fd = os.open(path.parent, os.O_RDONLY)
                try:
                    os.fsync(dir_fd)
                finally:
                    os.close(dir_fd)
            except OSError as e:
                logger.warning(f"Directory fsync failed for {path.parent}: {e}")
