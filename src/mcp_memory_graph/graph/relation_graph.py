"""
In-memory relation graph for one scope.

Built from the scope's persisted relations and rebuilt after every mutation;
never mutated in place. Relations may form cycles (A -> B -> A), so every
traversal keeps a visited set.

Directions:
    outgoing - edges whose source is the key
    incoming - edges whose target is the key
    both     - either
"""

import logging
from collections import defaultdict, deque
from collections.abc import Iterable
from typing import NamedTuple

from ..models.memory import Relation
from ..models.validators import Direction, RelationType

logger = logging.getLogger(__name__)


class Neighbor(NamedTuple):
    """One adjacent memory as seen from a key."""

    key: str
    relation_type: RelationType
    strength: float


class RelationGraph:
    """Adjacency view over a scope's relations."""

    def __init__(self, relations: Iterable[Relation] = ()):
        self._relations: tuple[Relation, ...] = tuple(relations)
        self._outgoing: dict[str, list[Relation]] = defaultdict(list)
        self._incoming: dict[str, list[Relation]] = defaultdict(list)

        for relation in self._relations:
            self._outgoing[relation.source_key].append(relation)
            self._incoming[relation.target_key].append(relation)

        # Deterministic adjacency order: by the far endpoint, then type
        for edges in self._outgoing.values():
            edges.sort(key=lambda r: (r.target_key, r.relation_type.value))
        for edges in self._incoming.values():
            edges.sort(key=lambda r: (r.source_key, r.relation_type.value))

    def __len__(self) -> int:
        return len(self._relations)

    @property
    def relations(self) -> tuple[Relation, ...]:
        return self._relations

    # ── Local queries ────────────────────────────────────────────────────

    def edges(self, key: str, direction: Direction = "both") -> list[Relation]:
        """Relations touching ``key`` in the given direction (self-loops once)."""
        if direction == "outgoing":
            return list(self._outgoing.get(key, ()))
        if direction == "incoming":
            return list(self._incoming.get(key, ()))

        result = list(self._outgoing.get(key, ()))
        result.extend(r for r in self._incoming.get(key, ()) if r.source_key != key)
        return result

    def neighbors(self, key: str, direction: Direction = "outgoing") -> list[Neighbor]:
        """Adjacent keys with the relation type and strength of each edge."""
        result: list[Neighbor] = []
        if direction in ("outgoing", "both"):
            result.extend(
                Neighbor(r.target_key, r.relation_type, r.strength) for r in self._outgoing.get(key, ())
            )
        if direction in ("incoming", "both"):
            result.extend(
                Neighbor(r.source_key, r.relation_type, r.strength)
                for r in self._incoming.get(key, ())
                if direction == "incoming" or r.source_key != key
            )
        return result

    def centrality(self, key: str) -> float:
        """Sum of the strengths of every edge incident to ``key``.

        A bidirectional link is stored as two edges and so counts twice.
        """
        return sum(r.strength for r in self.edges(key, "both"))

    def degree(self, key: str) -> int:
        return len(self.edges(key, "both"))

    # ── Traversal ────────────────────────────────────────────────────────

    def _adjacent_keys(
        self,
        key: str,
        direction: Direction,
        relation_type: RelationType | None,
    ) -> list[str]:
        return [
            n.key
            for n in self.neighbors(key, direction)
            if relation_type is None or n.relation_type == relation_type
        ]

    def traverse(
        self,
        start: str,
        max_depth: int | None = None,
        relation_type: RelationType | None = None,
        direction: Direction = "both",
    ) -> list[str]:
        """
        Breadth-first walk from ``start``.

        Args:
            start: Key to start from (always the first element)
            max_depth: Maximum hops from start (None = unbounded)
            relation_type: Only follow edges of this type
            direction: Which edges to follow

        Returns:
            Keys in visit order; each reachable key appears exactly once,
            also when the relations contain cycles.
        """
        visited = {start}
        order = [start]
        frontier: deque[tuple[str, int]] = deque([(start, 0)])

        while frontier:
            key, depth = frontier.popleft()
            if max_depth is not None and depth >= max_depth:
                continue
            for neighbor in self._adjacent_keys(key, direction, relation_type):
                if neighbor in visited:
                    continue
                visited.add(neighbor)
                order.append(neighbor)
                frontier.append((neighbor, depth + 1))

        return order

    def find_path(self, source: str, target: str) -> list[str] | None:
        """Shortest path from source to target ignoring edge direction, or None."""
        if source == target:
            return [source]

        parents: dict[str, str | None] = {source: None}
        frontier: deque[str] = deque([source])

        while frontier:
            key = frontier.popleft()
            for neighbor in self._adjacent_keys(key, "both", None):
                if neighbor in parents:
                    continue
                parents[neighbor] = key
                if neighbor == target:
                    path = [target]
                    while (parent := parents[path[-1]]) is not None:
                        path.append(parent)
                    return path[::-1]
                frontier.append(neighbor)

        return None

    # ── Whole-graph views ────────────────────────────────────────────────

    def edges_within(self, keys: Iterable[str]) -> list[Relation]:
        """Relations whose endpoints are both in ``keys``."""
        members = set(keys)
        return [r for r in self._relations if r.source_key in members and r.target_key in members]

    def clusters(self, keys: Iterable[str] | None = None) -> list[list[str]]:
        """
        Connected components (ignoring direction) with more than one member.

        Args:
            keys: Restrict to these nodes; defaults to every edge endpoint

        Returns:
            Sorted components, each sorted by key
        """
        if keys is None:
            members = {r.source_key for r in self._relations} | {r.target_key for r in self._relations}
        else:
            members = set(keys)

        parent = {key: key for key in members}

        def find(x: str) -> str:
            while parent[x] != x:
                parent[x] = parent[parent[x]]
                x = parent[x]
            return x

        for relation in self.edges_within(members):
            root_a, root_b = find(relation.source_key), find(relation.target_key)
            if root_a != root_b:
                parent[root_a] = root_b

        groups: dict[str, list[str]] = defaultdict(list)
        for key in members:
            groups[find(key)].append(key)

        return sorted(sorted(group) for group in groups.values() if len(group) > 1)
