"""Shared Pydantic types and validators for reuse across models.

Centralises the closed enumerations (memory category, relation type),
range-clamped floats and key constraints so every model speaks the same
language.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BeforeValidator, Field

# ---------------------------------------------------------------------------
# Closed enumerations
# ---------------------------------------------------------------------------


class MemoryCategory(StrEnum):
    """Retention intent of a memory."""

    PROJECT = "project"
    GLOBAL = "global"
    PATTERN = "pattern"
    DECISION = "decision"


class RelationType(StrEnum):
    """Kind of edge between two memories."""

    RELATED_TO = "related_to"
    DEPENDS_ON = "depends_on"
    IMPLEMENTS = "implements"
    EXTENDS = "extends"
    USES = "uses"
    REFERENCES = "references"
    PART_OF = "part_of"


# ---------------------------------------------------------------------------
# Numeric types
# ---------------------------------------------------------------------------

UnitFloat = Annotated[float, Field(ge=0.0, le=1.0, allow_inf_nan=False)]
"""Float in [0.0, 1.0] inclusive, for relation strengths and scores."""

NonNegativeInt = Annotated[int, Field(ge=0)]
"""Integer ≥ 0, for counts."""


# ---------------------------------------------------------------------------
# String constraints
# ---------------------------------------------------------------------------


def strip_key(v: Any) -> Any:
    """Trim surrounding whitespace from string keys; leave other values for Pydantic."""
    if isinstance(v, str):
        return v.strip()
    return v


MemoryKey = Annotated[str, BeforeValidator(strip_key), Field(min_length=1, max_length=256)]
"""Non-empty memory identifier, unique within a scope."""


# ---------------------------------------------------------------------------
# Literal enums
# ---------------------------------------------------------------------------

Direction = Literal["outgoing", "incoming", "both"]
GraphFormat = Literal["tree", "list", "mermaid"]
SearchStrategy = Literal["keyword", "temporal", "graph_traversal", "priority", "context_aware"]
TimelineGrouping = Literal["day", "week", "month", "category"]
