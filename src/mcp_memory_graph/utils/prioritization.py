"""
Prioritization scoring for memories against a task context.

Computes a score for each memory from four signals, each mapped to [0, 1):
    - Recency: exponential half-life decay of updated_at
    - Frequency: log-scaled access count
    - Centrality: summed strength of the memory's graph edges
    - Context: share of task terms found in the memory's key or value

    score = w_r * recency + w_f * frequency + w_c * centrality + w_x * context

Every signal mapping is strictly increasing and every weight is positive,
so the score is strictly increasing in each signal on its own. Recency is
measured against the newest memory in the candidate set rather than the
wall clock, so the ranking is a pure function of stored state. Equal scores
are ordered by key.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..models.responses import RankedMemory

if TYPE_CHECKING:
    from ..config import RankingSettings
    from ..models.memory import Memory

_SECONDS_PER_HOUR = 3600.0

_TOKEN_RE = re.compile(r"[a-z0-9][a-z0-9_\-]*")

STOP_WORDS: frozenset[str] = frozenset(
    {
        "the", "and", "for", "with", "that", "this", "from", "into", "onto", "are",
        "was", "were", "will", "would", "should", "could", "have", "has", "had",
        "not", "but", "all", "any", "can", "our", "your", "their", "its", "about",
        "use", "using", "via", "per", "then", "than", "when", "what", "which",
    }
)  # fmt: skip


@dataclass(frozen=True, slots=True)
class RankingWeights:
    """Weights and scales for priority computation."""

    recency: float = 0.3
    frequency: float = 0.2
    centrality: float = 0.3
    context: float = 0.2
    half_life_hours: float = 168.0
    frequency_reference: int = 20

    @classmethod
    def from_settings(cls, config: RankingSettings) -> RankingWeights:
        return cls(
            recency=config.recency_weight,
            frequency=config.frequency_weight,
            centrality=config.centrality_weight,
            context=config.context_weight,
            half_life_hours=config.recency_half_life_hours,
            frequency_reference=config.frequency_reference,
        )


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------


def recency_score(updated_at: float, reference_time: float, half_life_hours: float = 168.0) -> float:
    """
    Half-life decay of a memory's age.

    Returns 1.0 for a memory updated at ``reference_time`` and 0.5 for one
    that is ``half_life_hours`` older.
    """
    age_hours = max(0.0, reference_time - updated_at) / _SECONDS_PER_HOUR
    return 0.5 ** (age_hours / half_life_hours)


def frequency_score(access_count: int, reference: int = 20) -> float:
    """
    Log-scaled access frequency in [0, 1).

    Formula: log(1 + n) / (log(1 + n) + log(1 + reference)), so 0 accesses
    score 0.0 and ``reference`` accesses score 0.5. Never saturates.
    """
    log_count = math.log1p(max(access_count, 0))
    return log_count / (log_count + math.log1p(reference))


def centrality_score(centrality: float) -> float:
    """Map raw summed edge strength to [0, 1): c / (c + 1)."""
    centrality = max(centrality, 0.0)
    return centrality / (centrality + 1.0)


def extract_terms(context: str, focus_terms: Iterable[str] = ()) -> list[str]:
    """
    Search terms for a task context.

    Word tokens of at least three characters from ``context`` (stop words
    dropped) plus each non-empty focus phrase as a whole, lower-cased and
    de-duplicated in first-seen order.
    """
    terms: dict[str, None] = {}
    for token in _TOKEN_RE.findall(context.lower()):
        if len(token) >= 3 and token not in STOP_WORDS:
            terms.setdefault(token, None)
    for phrase in focus_terms:
        phrase = phrase.strip().lower()
        if phrase:
            terms.setdefault(phrase, None)
    return list(terms)


def context_score(memory: Memory, terms: list[str]) -> float:
    """Fraction of ``terms`` occurring in the memory's key or value (0.0 if no terms)."""
    if not terms:
        return 0.0
    haystack = f"{memory.key} {memory.value}".lower()
    return sum(1 for term in terms if term in haystack) / len(terms)


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------


def compute_priority(
    memory: Memory,
    reference_time: float,
    centrality: float,
    terms: list[str],
    weights: RankingWeights,
) -> RankedMemory:
    """Score one memory and keep the component signals for display."""
    recency = recency_score(memory.updated_at, reference_time, weights.half_life_hours)
    frequency = frequency_score(memory.access_count, weights.frequency_reference)
    central = centrality_score(centrality)
    context = context_score(memory, terms)

    score = (
        weights.recency * recency
        + weights.frequency * frequency
        + weights.centrality * central
        + weights.context * context
    )
    return RankedMemory(
        memory=memory,
        score=score,
        recency=recency,
        frequency=frequency,
        centrality=central,
        context=context,
    )


def rank_memories(
    memories: Iterable[Memory],
    centrality: Callable[[str], float],
    context: str = "",
    focus_terms: Iterable[str] = (),
    weights: RankingWeights | None = None,
    limit: int | None = None,
    reference_time: float | None = None,
) -> list[RankedMemory]:
    """
    Rank memories for a task context, highest score first.

    Args:
        memories: Candidate memories
        centrality: Raw centrality lookup by key (RelationGraph.centrality)
        context: Free-text task description
        focus_terms: Extra phrases (decisions, blockers...) matched as a whole
        weights: Scoring weights; defaults to RankingWeights()
        limit: Keep at most this many results
        reference_time: Time recency is measured against; defaults to the
            newest updated_at among the candidates

    Returns:
        RankedMemory list ordered by (-score, key)
    """
    weights = weights or RankingWeights()
    candidates = list(memories)
    if not candidates:
        return []

    if reference_time is None:
        reference_time = max(m.updated_at for m in candidates)
    terms = extract_terms(context, focus_terms)

    ranked = [compute_priority(m, reference_time, centrality(m.key), terms, weights) for m in candidates]
    ranked.sort(key=lambda r: (-r.score, r.memory.key))
    return ranked[:limit] if limit is not None else ranked
