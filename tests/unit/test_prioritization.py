"""
Unit tests for memory prioritization scoring.

Tests each signal mapping, strict monotonicity of the combined score,
deterministic tie-breaking and context term extraction.
"""

import math

import pytest

from mcp_memory_graph.config import RankingSettings
from mcp_memory_graph.models.memory import Memory
from mcp_memory_graph.utils.prioritization import (
    RankingWeights,
    centrality_score,
    context_score,
    extract_terms,
    frequency_score,
    rank_memories,
    recency_score,
)

HOUR = 3600.0


def _memory(key: str, value: str = "", updated_at: float = 1_000_000.0, access_count: int = 0) -> Memory:
    return Memory(key=key, value=value or key, created_at=updated_at, updated_at=updated_at, access_count=access_count)


def _no_centrality(key: str) -> float:
    return 0.0


# =============================================================================
# Signals
# =============================================================================


class TestRecency:
    def test_reference_time_scores_one(self):
        assert recency_score(100.0, 100.0) == 1.0

    def test_half_life(self):
        assert recency_score(0.0, 168 * HOUR, half_life_hours=168) == pytest.approx(0.5)

    def test_strictly_increasing_in_updated_at(self):
        now = 1000 * HOUR
        scores = [recency_score(now - age * HOUR, now) for age in (500, 100, 10, 1, 0)]
        assert scores == sorted(scores)
        assert len(set(scores)) == len(scores)

    def test_future_timestamps_clamp(self):
        assert recency_score(200.0, 100.0) == 1.0


class TestFrequency:
    def test_zero_accesses(self):
        assert frequency_score(0) == 0.0

    def test_reference_maps_to_half(self):
        assert frequency_score(20, reference=20) == pytest.approx(0.5)

    def test_strictly_increasing_and_bounded(self):
        scores = [frequency_score(n) for n in (0, 1, 5, 50, 10_000)]
        assert scores == sorted(scores)
        assert len(set(scores)) == len(scores)
        assert scores[-1] < 1.0


class TestCentrality:
    def test_mapping(self):
        assert centrality_score(0.0) == 0.0
        assert centrality_score(1.0) == 0.5
        assert centrality_score(3.0) == 0.75
        assert centrality_score(-1.0) == 0.0


class TestContext:
    def test_extract_terms_drops_short_and_stop_words(self):
        assert extract_terms("Fix the payment validation flow for EU") == ["fix", "payment", "validation", "flow"]

    def test_focus_terms_kept_whole(self):
        terms = extract_terms("payment flow", ["GPS-first", " ", "payment"])
        assert terms == ["payment", "flow", "gps-first"]

    def test_context_score_fraction(self):
        memory = _memory("arch-decision", "Use GPS-first validation")
        assert context_score(memory, ["payment", "validation", "flow"]) == pytest.approx(1 / 3)
        assert context_score(memory, ["arch"]) == 1.0
        assert context_score(memory, []) == 0.0


# =============================================================================
# Ranking
# =============================================================================


class TestRankMemories:
    def test_empty(self):
        assert rank_memories([], _no_centrality) == []

    def test_score_is_weighted_sum(self):
        weights = RankingWeights()
        ranked = rank_memories([_memory("a", access_count=20)], lambda key: 1.0, weights=weights)
        result = ranked[0]

        assert result.recency == 1.0
        assert result.frequency == pytest.approx(0.5)
        assert result.centrality == 0.5
        assert result.context == 0.0
        expected = weights.recency * 1.0 + weights.frequency * 0.5 + weights.centrality * 0.5
        assert result.score == pytest.approx(expected)

    def test_more_recent_ranks_higher(self):
        older = _memory("older", updated_at=1_000_000.0)
        newer = _memory("newer", updated_at=1_000_000.0 + HOUR)
        assert [r.key for r in rank_memories([older, newer], _no_centrality)] == ["newer", "older"]

    def test_more_frequent_ranks_higher(self):
        ranked = rank_memories([_memory("rare", access_count=1), _memory("common", access_count=2)], _no_centrality)
        assert [r.key for r in ranked] == ["common", "rare"]

    def test_more_central_ranks_higher(self):
        centrality = {"hub": 0.2, "leaf": 0.1}
        ranked = rank_memories([_memory("leaf"), _memory("hub")], centrality.get)
        assert [r.key for r in ranked] == ["hub", "leaf"]

    def test_context_match_ranks_higher(self):
        ranked = rank_memories([_memory("b-other"), _memory("c-payment")], _no_centrality, context="payment")
        assert [r.key for r in ranked] == ["c-payment", "b-other"]

    def test_ties_break_by_key(self):
        ranked = rank_memories([_memory("charlie"), _memory("alpha"), _memory("bravo")], _no_centrality)
        assert [r.key for r in ranked] == ["alpha", "bravo", "charlie"]
        assert len({r.score for r in ranked}) == 1

    def test_limit(self):
        memories = [_memory(f"m{i}") for i in range(5)]
        assert len(rank_memories(memories, _no_centrality, limit=2)) == 2

    def test_reference_time_defaults_to_newest(self):
        memories = [_memory("a", updated_at=10.0), _memory("b", updated_at=10.0 + 168 * HOUR)]
        scores = {r.key: r.recency for r in rank_memories(memories, _no_centrality)}
        assert scores["b"] == 1.0
        assert scores["a"] == pytest.approx(0.5)

    def test_scores_are_finite(self):
        ranked = rank_memories([_memory("a", access_count=10**9)], lambda key: 1e9)
        assert math.isfinite(ranked[0].score)


class TestRankingWeights:
    def test_from_settings(self):
        config = RankingSettings(recency_weight=0.1, context_weight=0.9, recency_half_life_hours=24)
        weights = RankingWeights.from_settings(config)
        assert weights.recency == 0.1
        assert weights.context == 0.9
        assert weights.half_life_hours == 24
        assert weights.frequency_reference == 20
