"""Service-layer response models.

Typed Pydantic models returned by ``MemoryManager``.  Tool handlers render
them to text; tests assert on their attributes instead of string-matching.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from ..errors import ErrorKind
from .memory import Memory, Relation

# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------


class ServiceResult(BaseModel):
    """Common base for operation results."""

    success: bool = True
    error: str | None = None
    error_kind: ErrorKind | None = None


# ---------------------------------------------------------------------------
# Linking
# ---------------------------------------------------------------------------


class LinkResult(ServiceResult):
    """Outcome of ``link_memories``.

    On success ``relations`` holds the stored record(s): one, or two for a
    bidirectional link.  ``missing_key`` names the absent endpoint for
    ``not_found`` failures.
    """

    relations: list[Relation] = Field(default_factory=list)
    missing_key: str | None = None
    replaced: int = 0


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------


class RankedMemory(BaseModel):
    """A memory with its prioritization score and the signals behind it."""

    memory: Memory
    score: float
    recency: float = 0.0
    frequency: float = 0.0
    centrality: float = 0.0
    context: float = 0.0

    @property
    def key(self) -> str:
        return self.memory.key


# ---------------------------------------------------------------------------
# Graph snapshot
# ---------------------------------------------------------------------------


class GraphNode(BaseModel):
    """A memory as seen from the graph, with its outgoing edges."""

    key: str
    value: str
    category: str
    relations: list[Relation] = Field(default_factory=list)


class GraphSnapshot(BaseModel):
    """Nodes, edges and clusters of a scope or of one key's neighbourhood."""

    root: str | None = None
    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[Relation] = Field(default_factory=list)
    clusters: list[list[str]] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


class ScopeStats(BaseModel):
    """Counts for a scope."""

    scope: str
    total: int = 0
    by_category: dict[str, int] = Field(default_factory=dict)
    relations: int = 0
