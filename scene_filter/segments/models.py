"""
Segment data model.

A segment marks a time interval of sensitive content together with where it
came from and how much the community trusts it. Segments from every producer
are normalized into this one shape before they are scored or merged.
"""

import logging
from dataclasses import dataclass, asdict, fields
from enum import Enum
from typing import Any, Dict, Tuple

logger = logging.getLogger(__name__)

# Two segments closer than this (on both ends) are the same annotation
EQUALITY_TOLERANCE = 0.01


class SegmentType(str, Enum):
    """Category of sensitive content."""
    SEXUAL = "sexual"
    NUDITY = "nudity"


class SourceType(str, Enum):
    """Provenance tier of a segment."""
    MANUAL = "manual"        # Entered by the user
    COMMUNITY = "community"  # Crowd-sourced, vote weighted
    LOCAL_AI = "local_ai"    # Heuristic detector output
    BUNDLED = "bundled"      # Shipped with the application

    @property
    def default_confidence(self) -> int:
        """Prior confidence used when a record carries none."""
        return DEFAULT_CONFIDENCE[self]


DEFAULT_CONFIDENCE = {
    SourceType.MANUAL: 95,
    SourceType.COMMUNITY: 80,
    SourceType.LOCAL_AI: 45,
    SourceType.BUNDLED: 95,
}


@dataclass(frozen=True)
class Segment:
    """A validated, canonical segment."""
    start: float  # seconds, 3 decimal places
    end: float    # seconds, always > start
    type: SegmentType
    source_type: SourceType = SourceType.MANUAL
    source: str = "manual"
    confidence_score: int = 95
    confirmations: int = 0
    votes_up: int = 0
    votes_down: int = 0
    reports: int = 0
    reliability_weight: float = 1.0
    unverified: bool = False

    @property
    def duration(self) -> float:
        return self.end - self.start

    @property
    def segment_id(self) -> str:
        """Deterministic dedup key: type|start|end|source_type."""
        return f"{self.type.value}|{self.start:.3f}|{self.end:.3f}|{self.source_type.value}"

    @property
    def sort_key(self) -> Tuple[float, float]:
        return (self.start, self.end)

    def same_as(self, other: "Segment") -> bool:
        """
        Check whether two segments are the same annotation.

        Same type and both ends within 10ms, which absorbs sub-frame jitter
        from re-submitted annotations.
        """
        return (
            self.type == other.type
            and abs(self.start - other.start) < EQUALITY_TOLERANCE
            and abs(self.end - other.end) < EQUALITY_TOLERANCE
        )

    def conflicts_with(self, other: "Segment") -> bool:
        """Check whether two same-type segments compete for screen time."""
        if self.type != other.type:
            return False
        return self.start < other.end and other.start < self.end

    def contains(self, time: float) -> bool:
        return self.start <= time <= self.end

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary (the persisted shape)."""
        data = asdict(self)
        data["type"] = self.type.value
        data["source_type"] = self.source_type.value
        return data

    def __repr__(self) -> str:
        return (
            f"Segment({self.start:.3f}-{self.end:.3f}s, {self.type.value}, "
            f"{self.source_type.value}, conf={self.confidence_score})"
        )


@dataclass(frozen=True, repr=False)
class ScoredSegment(Segment):
    """
    A segment with its trust metrics attached.

    The derived fields depend on mutable community counters, so they are
    recomputed on every reconciliation and never written back to storage.
    """
    effective_confidence: int = 0
    ignored_by_trust: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["segment_id"] = self.segment_id
        return data

    def without_metrics(self) -> Segment:
        """Strip the derived fields, e.g. before persisting."""
        return Segment(**{f.name: getattr(self, f.name) for f in fields(Segment)})

    def __repr__(self) -> str:
        return (
            f"ScoredSegment({self.start:.3f}-{self.end:.3f}s, {self.type.value}, "
            f"{self.source_type.value}, effective={self.effective_confidence})"
        )


def sort_segments(segments):
    """Return segments ordered by (start, end)."""
    return sorted(segments, key=lambda s: s.sort_key)
