"""Memory and relation data models.

Pydantic v2 models for the two record kinds a scope stores, with
float/ISO timestamp synchronisation shared by both.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .validators import MemoryCategory, MemoryKey, NonNegativeInt, RelationType, UnitFloat

logger = logging.getLogger(__name__)

# Smallest step that still moves an epoch float (~1.7e9) forward
_MIN_TICK = 1e-6

# ---------------------------------------------------------------------------
# Timestamp helpers (module-level, shared by model validators and touch())
# ---------------------------------------------------------------------------


def _float_to_iso(ts: float) -> str:
    """Convert float timestamp to ISO string (UTC, Z-suffix)."""
    return datetime.fromtimestamp(ts, timezone.utc).isoformat().replace("+00:00", "Z")


def _iso_to_float(iso_str: str) -> float:
    """Convert ISO string to float timestamp; naive values are read as UTC."""
    dt = datetime.fromisoformat(iso_str)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def _sync_pair(
    ts_float: float | None,
    ts_iso: str | None,
    now: float,
    label: str,
) -> tuple[float, str]:
    """Synchronise a (float, iso) timestamp pair.

    The float is authoritative when present; the ISO string is only parsed
    when it is the sole value.
    """
    if ts_float is not None:
        return ts_float, _float_to_iso(ts_float)

    if ts_iso:
        try:
            return _iso_to_float(ts_iso), ts_iso
        except ValueError as e:
            logger.warning("Invalid %s_iso %r: %s", label, ts_iso, e)

    return now, _float_to_iso(now)


# ---------------------------------------------------------------------------
# Memory model
# ---------------------------------------------------------------------------


class Memory(BaseModel):
    """A named, durable piece of knowledge within one scope."""

    model_config = ConfigDict(populate_by_name=True)

    key: MemoryKey
    value: str
    category: MemoryCategory = MemoryCategory.PROJECT

    # Timestamps: model_validator syncs float <-> ISO automatically
    created_at: float | None = None
    created_at_iso: str | None = None
    updated_at: float | None = None
    updated_at_iso: str | None = None

    access_count: NonNegativeInt = 0
    last_accessed_at: float | None = None

    @model_validator(mode="after")
    def sync_timestamps(self) -> Self:
        """Synchronise float and ISO timestamp pairs, filling in missing values."""
        now = time.time()

        self.created_at, self.created_at_iso = _sync_pair(
            self.created_at,
            self.created_at_iso,
            now,
            "created_at",
        )
        self.updated_at, self.updated_at_iso = _sync_pair(
            self.updated_at,
            self.updated_at_iso,
            self.created_at,
            "updated_at",
        )
        return self

    def touch(self) -> None:
        """Move updated_at to now, always strictly past its previous value."""
        now = max(time.time(), self.updated_at + _MIN_TICK)
        self.updated_at = now
        self.updated_at_iso = _float_to_iso(now)

    def mark_accessed(self) -> None:
        """Record one successful recall."""
        self.access_count += 1
        self.last_accessed_at = time.time()

    def revised(self, value: str, category: MemoryCategory | None = None) -> "Memory":
        """Return a copy carrying a new value, keeping creation time and access stats."""
        memory = self.model_copy(update={"value": value, "category": category or self.category})
        memory.touch()
        return memory

    @property
    def preview(self) -> str:
        """First 60 characters of the value, for one-line listings."""
        return self.value if len(self.value) <= 60 else self.value[:60] + "..."


# ---------------------------------------------------------------------------
# Relation model
# ---------------------------------------------------------------------------


class Relation(BaseModel):
    """A typed, weighted edge between two memories of the same scope.

    Relations are immutable; re-linking the same (source, target, type)
    triple replaces the record instead of editing it.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source_key: MemoryKey
    target_key: MemoryKey
    relation_type: RelationType
    strength: UnitFloat = 1.0
    bidirectional: bool = False
    created_at: float = Field(default=0.0)
    created_at_iso: str = ""

    @model_validator(mode="before")
    @classmethod
    def fill_created(cls, data: Any) -> Any:
        """Stamp creation time before the model freezes."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        created_at, created_at_iso = _sync_pair(
            data.get("created_at"),
            data.get("created_at_iso"),
            time.time(),
            "created_at",
        )
        data["created_at"] = created_at
        data["created_at_iso"] = created_at_iso
        return data

    @property
    def triple(self) -> tuple[str, str, str]:
        """Identity of the edge for replacement: (source, target, type)."""
        return self.source_key, self.target_key, self.relation_type.value

    def inverse(self) -> "Relation":
        """The mirrored edge with identical type, strength and timestamp."""
        return self.model_copy(update={"source_key": self.target_key, "target_key": self.source_key})
