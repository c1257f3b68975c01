"""MCP tool input models.

Pydantic models validating the raw arguments of every MCP tool.  Field names
are snake_case in Python and camelCase on the wire (``sourceKey``,
``projectPath``...), matching the published tool schemas.  Range checks and
enum membership live here as declarative constraints, so nothing malformed
reaches ``MemoryManager``.
"""

from __future__ import annotations

from datetime import date
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .validators import (
    GraphFormat,
    MemoryCategory,
    MemoryKey,
    RelationType,
    SearchStrategy,
    TimelineGrouping,
    UnitFloat,
)


class ToolParams(BaseModel):
    """Base for tool inputs: camelCase aliases plus the optional scope hint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    project_path: str | None = None


class SaveMemoryParams(ToolParams):
    """Validated input for the ``save_memory`` MCP tool."""

    key: MemoryKey
    value: str = Field(min_length=1)
    category: MemoryCategory = MemoryCategory.PROJECT


class RecallMemoryParams(ToolParams):
    """Validated input for the ``recall_memory`` MCP tool."""

    key: MemoryKey


class UpdateMemoryParams(ToolParams):
    """Validated input for the ``update_memory`` MCP tool."""

    key: MemoryKey
    value: str = Field(min_length=1)
    append: bool = False


class DeleteMemoryParams(ToolParams):
    """Validated input for the ``delete_memory`` MCP tool."""

    key: MemoryKey


class ListMemoriesParams(ToolParams):
    """Validated input for the ``list_memories`` MCP tool."""

    category: MemoryCategory | None = None
    limit: int = Field(default=10, ge=1, le=100)


class SearchMemoriesParams(ToolParams):
    """Validated input for the ``search_memories`` MCP tool."""

    query: str = ""
    category: MemoryCategory | None = None
    strategy: SearchStrategy = "keyword"
    start_key: MemoryKey | None = None
    depth: int = Field(default=2, ge=1, le=5)
    limit: int = Field(default=20, ge=1, le=100)

    @model_validator(mode="after")
    def check_strategy_fields(self) -> Self:
        """Temporal and priority search may list everything; the others need a query.

        graph_traversal without startKey searches by keyword.
        """
        if self.strategy in ("temporal", "priority"):
            return self
        if self.strategy == "graph_traversal" and self.start_key:
            return self
        if not self.query.strip():
            if self.strategy == "graph_traversal":
                raise ValueError("startKey or query is required for 'graph_traversal' strategy")
            raise ValueError(f"query is required for '{self.strategy}' strategy")
        return self


class LinkMemoriesParams(ToolParams):
    """Validated input for the ``link_memories`` MCP tool."""

    source_key: MemoryKey
    target_key: MemoryKey
    relation_type: RelationType
    strength: UnitFloat = 1.0
    bidirectional: bool = False


class UnlinkMemoriesParams(ToolParams):
    """Validated input for the ``unlink_memories`` MCP tool."""

    source_key: MemoryKey
    target_key: MemoryKey
    relation_type: RelationType | None = None


class MemoryGraphParams(ToolParams):
    """Validated input for the ``get_memory_graph`` MCP tool."""

    key: MemoryKey | None = None
    depth: int = Field(default=2, ge=1, le=5)
    relation_type: RelationType | None = None
    format: GraphFormat = "tree"


class PrioritizeMemoryParams(ToolParams):
    """Validated input for the ``prioritize_memory`` MCP tool."""

    current_task: str = Field(min_length=1)
    critical_decisions: list[str] = Field(default_factory=list)
    code_changes: list[str] = Field(default_factory=list)
    blockers: list[str] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)
    limit: int = Field(default=20, ge=1, le=100)

    @property
    def focus_terms(self) -> list[str]:
        return [*self.critical_decisions, *self.code_changes, *self.blockers, *self.next_steps]


class MemoryTimelineParams(ToolParams):
    """Validated input for the ``create_memory_timeline`` MCP tool."""

    start_date: date | None = None
    end_date: date | None = None
    category: MemoryCategory | None = None
    limit: int = Field(default=20, ge=1, le=200)
    group_by: TimelineGrouping = "day"

    @model_validator(mode="after")
    def check_window(self) -> Self:
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("startDate must not be after endDate")
        return self


class StartSessionParams(ToolParams):
    """Validated input for the ``start_session`` MCP tool."""

    greeting: str = ""
    load_memory: bool = True
    limit: int = Field(default=5, ge=1, le=20)
