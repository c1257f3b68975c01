"""Data models for memories, relations, scopes and tool inputs."""

from .memory import Memory, Relation
from .responses import GraphNode, GraphSnapshot, LinkResult, RankedMemory, ScopeStats, ServiceResult
from .scope import GLOBAL_SCOPE, Scope, resolve_scope
from .validators import MemoryCategory, RelationType

__all__ = [
    "GLOBAL_SCOPE",
    "GraphNode",
    "GraphSnapshot",
    "LinkResult",
    "Memory",
    "MemoryCategory",
    "RankedMemory",
    "Relation",
    "RelationType",
    "Scope",
    "ScopeStats",
    "ServiceResult",
    "resolve_scope",
]
