"""
Graph layer for MCP Memory Graph.

Provides the in-memory relation graph of a scope:
- Typed, weighted edges (related_to, depends_on, implements, ...)
- Neighbour lookup and strength-based centrality for ranking
- Cycle-safe traversal, shortest paths and cluster detection
"""

from .relation_graph import Neighbor, RelationGraph

__all__ = [
    "Neighbor",
    "RelationGraph",
]
