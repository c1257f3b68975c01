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
Abstract scope storage interface.

A backend persists the full state of one scope (its memories and relations)
as a single durable unit. Implementations must:

- return an empty state from ``load`` when the scope has never been persisted
- make ``persist`` atomic: after a crash the previous state or the new state
  is readable, never a partial one
- raise ``StorageUnavailableError`` for any failure of the durable medium
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from ..models.memory import Memory, Relation
from ..models.scope import Scope


@dataclass
class ScopeState:
    """Everything one scope owns."""

    memories: dict[str, Memory] = field(default_factory=dict)
    relations: list[Relation] = field(default_factory=list)

    def copy(self) -> "ScopeState":
        """Deep copy, so callers never share mutable records with a backend."""
        return ScopeState(
            memories={key: memory.model_copy() for key, memory in self.memories.items()},
            relations=list(self.relations),
        )


class ScopeStorage(ABC):
    """Abstract base class for scope storage backends."""

    @abstractmethod
    def load(self, scope: Scope) -> ScopeState:
        """Read the persisted state of ``scope``; empty state if none exists."""

    @abstractmethod
    def persist(self, scope: Scope, state: ScopeState) -> None:
        """Durably and atomically replace the persisted state of ``scope``."""

    @abstractmethod
    def location(self, scope: Scope) -> str:
        """Human-readable location of the scope's durable unit."""

    def close(self) -> None:  # noqa: B027
        """Release backend resources. Default: nothing to release."""
