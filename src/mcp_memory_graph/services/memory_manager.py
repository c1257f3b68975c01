"""
Memory Manager - business logic for one scope.

One ``MemoryManager`` owns the loaded state of a scope, the write lock that
serialises its mutations, and the relation graph derived from the stored
relations. Every mutation builds the next state from a copy, persists it
atomically and only then swaps it in, so a failed write leaves both the
durable unit and the in-memory state untouched.

Recalls update access statistics on the live record without touching disk;
the dirty flag makes the next persist (or ``flush``) write them out.
"""

import logging
import threading
from collections import Counter
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta, timezone

from pydantic import ValidationError

from ..config import GraphSettings, RankingSettings
from ..errors import (
    MemoryNotFoundError,
    MemoryValidationError,
    StorageUnavailableError,
    describe_validation_error,
)
from ..graph.relation_graph import RelationGraph
from ..models.memory import Memory, Relation
from ..models.responses import GraphNode, GraphSnapshot, LinkResult, RankedMemory, ScopeStats
from ..models.scope import Scope
from ..models.validators import Direction, MemoryCategory, RelationType, SearchStrategy
from ..storage.base import ScopeState, ScopeStorage
from ..utils.prioritization import RankingWeights, rank_memories

logger = logging.getLogger(__name__)


def _coerce_category(category: MemoryCategory | str) -> MemoryCategory:
    try:
        return MemoryCategory(category)
    except ValueError:
        raise MemoryValidationError(f"Unknown category: {category}") from None


def _coerce_relation_type(relation_type: RelationType | str) -> RelationType:
    try:
        return RelationType(relation_type)
    except ValueError:
        raise MemoryValidationError(f"Unknown relation type: {relation_type}") from None


def _relevance(ranked: RankedMemory, needle: str) -> float:
    memory = ranked.memory
    return 3 * (needle in memory.key.lower()) + 2 * (needle in memory.value.lower()) + ranked.score


def _clean_key(key: str) -> str:
    key = key.strip()
    if not key:
        raise MemoryValidationError("key must not be empty")
    return key


def _as_date(value: date | str | None) -> date | None:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise MemoryValidationError(f"Invalid ISO date: {value}") from None


def _newest_first(memory: Memory) -> tuple[float, str]:
    return -memory.updated_at, memory.key


class MemoryManager:
    """
    Memories and relations of one scope.

    Obtain instances through ``MemoryRegistry.get`` so that each scope has
    exactly one manager (and therefore one write lock) per process.
    """

    def __init__(
        self,
        scope: Scope,
        storage: ScopeStorage,
        ranking: RankingSettings | None = None,
        graph_settings: GraphSettings | None = None,
    ):
        self.scope = scope
        self.storage = storage
        ranking = ranking or RankingSettings()
        self._weights = RankingWeights.from_settings(ranking)
        self._default_limit = ranking.default_limit
        self._graph_settings = graph_settings or GraphSettings()

        self._lock = threading.Lock()
        self._state = ScopeState()
        self._graph = RelationGraph()
        self._dirty = False

    # ── Lifecycle ────────────────────────────────────────────────────────

    def load(self) -> None:
        """Read the scope's persisted state, replacing whatever is loaded."""
        with self._lock:
            state = self.storage.load(self.scope)
            self._state = state
            self._graph = RelationGraph(state.relations)
            self._dirty = False
        logger.info(
            f"Loaded scope {self.scope}: {len(state.memories)} memories, "
            f"{len(state.relations)} relations from {self.location}"
        )

    @property
    def location(self) -> str:
        return self.storage.location(self.scope)

    @property
    def graph(self) -> RelationGraph:
        """Current relation graph; replaced (never mutated) after each change."""
        return self._graph

    @property
    def dirty(self) -> bool:
        """True when recalls have changed access statistics not yet persisted."""
        return self._dirty

    def _commit(self, state: ScopeState) -> None:
        """Persist ``state`` and make it current. Caller holds the lock.

        Raises:
            StorageUnavailableError: nothing was swapped in
        """
        self.storage.persist(self.scope, state)
        self._state = state
        self._graph = RelationGraph(state.relations)
        self._dirty = False
        logger.debug(f"Persisted scope {self.scope}: {len(state.memories)} memories, {len(state.relations)} relations")

    def flush(self) -> bool:
        """Write pending access statistics. Returns True if anything was written."""
        with self._lock:
            if not self._dirty:
                return False
            self._commit(self._state.copy())
            return True

    # ── Memories ─────────────────────────────────────────────────────────

    def save(self, key: str, value: str, category: MemoryCategory | str = MemoryCategory.PROJECT) -> Memory:
        """
        Create or overwrite a memory.

        Re-saving an existing key replaces its value and category, refreshes
        updated_at and keeps created_at and access statistics.

        Raises:
            MemoryValidationError: empty key or unknown category
            StorageUnavailableError: the scope could not be written
        """
        key = _clean_key(key)
        category = _coerce_category(category)

        with self._lock:
            state = self._state.copy()
            existing = state.memories.get(key)
            if existing is None:
                try:
                    memory = Memory(key=key, value=value, category=category)
                except ValidationError as e:
                    raise MemoryValidationError(describe_validation_error(e)) from e
            else:
                memory = existing.revised(value, category)
            state.memories[key] = memory
            self._commit(state)

        logger.debug(f"{'Created' if existing is None else 'Overwrote'} memory {key!r} in scope {self.scope}")
        return memory.model_copy()

    def recall(self, key: str) -> Memory | None:
        """Return a copy of the memory stored under ``key``, or None.

        A hit increments access_count and sets last_accessed_at.
        """
        with self._lock:
            memory = self._state.memories.get(key.strip())
            if memory is None:
                return None
            memory.mark_accessed()
            self._dirty = True
            return memory.model_copy()

    def update(self, key: str, value: str, append: bool = False) -> Memory | None:
        """Overwrite (or append to) an existing memory's value; None if absent."""
        key = _clean_key(key)
        with self._lock:
            existing = self._state.memories.get(key)
            if existing is None:
                return None
            new_value = f"{existing.value} {value}" if append else value
            state = self._state.copy()
            memory = state.memories[key].revised(new_value)
            state.memories[key] = memory
            self._commit(state)
        return memory.model_copy()

    def delete(self, key: str) -> bool:
        """Remove a memory and every relation touching it. False if absent."""
        key = key.strip()
        with self._lock:
            if key not in self._state.memories:
                return False
            state = self._state.copy()
            del state.memories[key]
            state.relations = [r for r in state.relations if key not in (r.source_key, r.target_key)]
            removed = len(self._state.relations) - len(state.relations)
            self._commit(state)

        logger.info(f"Deleted memory {key!r} and {removed} relation(s) from scope {self.scope}")
        return True

    def list_memories(self, category: MemoryCategory | str | None = None, limit: int | None = None) -> list[Memory]:
        """Memories, most recently updated first (ties by key)."""
        if category is not None:
            category = _coerce_category(category)
        with self._lock:
            memories = [m.model_copy() for m in self._state.memories.values() if category is None or m.category == category]
        memories.sort(key=_newest_first)
        return memories[:limit] if limit is not None else memories

    def search(
        self,
        query: str,
        category: MemoryCategory | str | None = None,
        limit: int | None = None,
        strategy: SearchStrategy = "keyword",
    ) -> list[Memory]:
        """
        Case-insensitive substring search over keys and values.

        Strategies:
            keyword       - key matches before value-only matches, then newest update first
            temporal      - newest creation first; an empty query matches everything
            priority      - highest prioritization score first (no task context);
                            an empty query matches everything
            context_aware - 3 for a key hit plus 2 for a value hit plus the
                            prioritization score with the query as context
        """
        needle = query.strip().lower()
        if category is not None:
            category = _coerce_category(category)

        with self._lock:
            matches = [
                m.model_copy()
                for m in self._state.memories.values()
                if (category is None or m.category == category)
                and (not needle or needle in m.key.lower() or needle in m.value.lower())
            ]
            graph = self._graph

        if strategy in ("priority", "context_aware"):
            ranked = rank_memories(
                matches,
                centrality=graph.centrality,
                context=query if strategy == "context_aware" else "",
                weights=self._weights,
            )
            if strategy == "context_aware":
                ranked.sort(key=lambda r: (-_relevance(r, needle), r.key))
            matches = [r.memory for r in ranked]
        elif strategy == "temporal":
            matches.sort(key=lambda m: (-m.created_at, m.key))
        else:
            matches.sort(key=lambda m: (needle not in m.key.lower(), -m.updated_at, m.key))
        return matches[:limit] if limit is not None else matches

    def timeline(
        self,
        start: date | str | None = None,
        end: date | str | None = None,
        category: MemoryCategory | str | None = None,
        limit: int | None = 50,
    ) -> list[Memory]:
        """Memories created within [start, end] (whole UTC days), newest first."""
        start, end = _as_date(start), _as_date(end)
        if start and end and start > end:
            raise MemoryValidationError("start date must not be after end date")
        if category is not None:
            category = _coerce_category(category)

        lower = datetime.combine(start, time.min, timezone.utc).timestamp() if start else None
        upper = datetime.combine(end + timedelta(days=1), time.min, timezone.utc).timestamp() if end else None

        with self._lock:
            memories = [
                m.model_copy()
                for m in self._state.memories.values()
                if (category is None or m.category == category)
                and (lower is None or m.created_at >= lower)
                and (upper is None or m.created_at < upper)
            ]
        memories.sort(key=lambda m: (-m.created_at, m.key))
        return memories[:limit] if limit is not None else memories

    def stats(self) -> ScopeStats:
        with self._lock:
            counts = Counter(m.category.value for m in self._state.memories.values())
            return ScopeStats(
                scope=str(self.scope),
                total=len(self._state.memories),
                by_category={c.value: counts.get(c.value, 0) for c in MemoryCategory},
                relations=len(self._state.relations),
            )

    # ── Relations ────────────────────────────────────────────────────────

    def link_memories(
        self,
        source_key: str,
        target_key: str,
        relation_type: RelationType | str,
        strength: float = 1.0,
        bidirectional: bool = False,
    ) -> LinkResult:
        """
        Create (or replace) a typed, weighted relation between two memories.

        The (source, target, type) triple is unique: linking it again replaces
        the previous record, together with that record's inverse when it was
        bidirectional. A bidirectional link also stores the inverse edge; a
        bidirectional self-link is stored once.

        Returns:
            LinkResult; on failure ``error_kind`` is ``validation``,
            ``not_found`` (``missing_key`` names the endpoint) or
            ``storage_unavailable``, and nothing was changed.
        """
        try:
            relation = Relation(
                source_key=source_key,
                target_key=target_key,
                relation_type=relation_type,
                strength=strength,
                bidirectional=bidirectional,
            )
        except ValidationError as e:
            message = describe_validation_error(e)
            logger.warning(f"Rejected link {source_key!r} -> {target_key!r}: {message}")
            return LinkResult(success=False, error=message, error_kind="validation")

        records = [relation]
        if relation.bidirectional and relation.source_key != relation.target_key:
            records.append(relation.inverse())

        with self._lock:
            for role, key in (("Source memory", relation.source_key), ("Target memory", relation.target_key)):
                if key not in self._state.memories:
                    error = MemoryNotFoundError(key, role)
                    logger.warning(f"Rejected link in scope {self.scope}: {error}")
                    return LinkResult(success=False, error=str(error), error_kind="not_found", missing_key=key)

            new_triples = {r.triple for r in records}
            dropped = {r.triple for r in self._state.relations if r.triple in new_triples}
            dropped |= {
                r.inverse().triple for r in self._state.relations if r.triple in new_triples and r.bidirectional
            }

            state = self._state.copy()
            state.relations = [r for r in state.relations if r.triple not in dropped]
            replaced = len(self._state.relations) - len(state.relations)
            state.relations.extend(records)

            try:
                self._commit(state)
            except StorageUnavailableError as e:
                logger.error(f"Failed to persist link in scope {self.scope}: {e}")
                return LinkResult(success=False, error=str(e), error_kind="storage_unavailable")

        logger.debug(
            f"Linked {relation.source_key!r} -[{relation.relation_type}]-> {relation.target_key!r} "
            f"(strength={relation.strength}, bidirectional={relation.bidirectional}, replaced={replaced})"
        )
        return LinkResult(relations=records, replaced=replaced)

    def unlink_memories(
        self,
        source_key: str,
        target_key: str,
        relation_type: RelationType | str | None = None,
    ) -> int:
        """
        Remove relations from source to target, optionally of one type only.

        Removing one direction of a bidirectional link removes both. Returns
        the number of records removed; zero removals write nothing.
        """
        source_key, target_key = source_key.strip(), target_key.strip()
        if relation_type is not None:
            relation_type = _coerce_relation_type(relation_type)

        with self._lock:
            matched = [
                r
                for r in self._state.relations
                if r.source_key == source_key
                and r.target_key == target_key
                and (relation_type is None or r.relation_type == relation_type)
            ]
            if not matched:
                return 0

            dropped = {r.triple for r in matched} | {r.inverse().triple for r in matched if r.bidirectional}
            state = self._state.copy()
            state.relations = [r for r in state.relations if r.triple not in dropped]
            removed = len(self._state.relations) - len(state.relations)
            self._commit(state)

        logger.info(f"Unlinked {source_key!r} -> {target_key!r} in scope {self.scope}: {removed} relation(s)")
        return removed

    def get_relations(self, key: str, direction: Direction = "both") -> list[Relation]:
        return self._graph.edges(key.strip(), direction)

    def _require(self, key: str, role: str = "Memory") -> str:
        key = key.strip()
        if key not in self._state.memories:
            raise MemoryNotFoundError(key, role)
        return key

    def _depth(self, depth: int | None) -> int:
        depth = depth or self._graph_settings.default_depth
        return max(1, min(depth, self._graph_settings.max_depth))

    def related(
        self,
        key: str,
        depth: int | None = 1,
        relation_type: RelationType | str | None = None,
        limit: int | None = None,
    ) -> list[Memory]:
        """
        Memories reachable from ``key`` within ``depth`` hops, in BFS order.

        Edges are followed in both directions; the start key is excluded.

        Raises:
            MemoryNotFoundError: ``key`` does not exist
        """
        if relation_type is not None:
            relation_type = _coerce_relation_type(relation_type)
        with self._lock:
            key = self._require(key)
            keys = self._graph.traverse(key, self._depth(depth), relation_type)[1:]
            memories = [self._state.memories[k].model_copy() for k in keys if k in self._state.memories]
        return memories[:limit] if limit is not None else memories

    def find_path(self, source_key: str, target_key: str) -> list[str] | None:
        """Shortest chain of keys linking two memories (edge direction ignored)."""
        with self._lock:
            source_key = self._require(source_key, "Source memory")
            target_key = self._require(target_key, "Target memory")
            return self._graph.find_path(source_key, target_key)

    def get_graph(
        self,
        key: str | None = None,
        depth: int | None = None,
        relation_type: RelationType | str | None = None,
    ) -> GraphSnapshot:
        """
        Snapshot of the scope's graph.

        With ``key``: the neighbourhood within ``depth`` hops (clamped to the
        configured maximum), nodes in BFS order. Without: every memory,
        ordered by key. ``relation_type`` restricts both traversal and edges.

        Raises:
            MemoryNotFoundError: ``key`` given but absent
        """
        if relation_type is not None:
            relation_type = _coerce_relation_type(relation_type)

        with self._lock:
            if key is not None:
                key = self._require(key)
                keys = self._graph.traverse(key, self._depth(depth), relation_type)
            else:
                keys = sorted(self._state.memories)

            edges = [
                r
                for r in self._graph.edges_within(keys)
                if relation_type is None or r.relation_type == relation_type
            ]
            subgraph = RelationGraph(edges)
            nodes = [
                GraphNode(
                    key=k,
                    value=self._state.memories[k].value,
                    category=self._state.memories[k].category.value,
                    relations=subgraph.edges(k, "outgoing"),
                )
                for k in keys
            ]

        return GraphSnapshot(root=key, nodes=nodes, edges=edges, clusters=subgraph.clusters(keys))

    # ── Ranking ──────────────────────────────────────────────────────────

    def prioritize(
        self,
        context: str,
        limit: int | None = None,
        category: MemoryCategory | str | None = None,
        focus_terms: Iterable[str] = (),
    ) -> list[RankedMemory]:
        """
        Rank memories by relevance to a task context.

        Read-only: access statistics are not changed. See
        ``utils.prioritization`` for the scoring formula.
        """
        if category is not None:
            category = _coerce_category(category)
        with self._lock:
            candidates = [m.model_copy() for m in self._state.memories.values() if category is None or m.category == category]
            graph = self._graph

        return rank_memories(
            candidates,
            centrality=graph.centrality,
            context=context,
            focus_terms=focus_terms,
            weights=self._weights,
            limit=limit or self._default_limit,
        )
