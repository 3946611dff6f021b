"""
Segment validation for Scene Filter.

Turns untyped segment records (JSON dictionaries from bundled files, the
community database, local storage or the detector) into canonical
``Segment`` objects. Invalid records are dropped, never repaired: bulk
feeds are noisy and partial success is the expected outcome.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .models import ScoredSegment, Segment, SegmentType, SourceType, sort_segments

logger = logging.getLogger(__name__)

# Independent upper bounds for the feedback counters
MAX_CONFIRMATIONS = 1000
MAX_VOTES = 100000
MAX_REPORTS = 100000
MAX_RELIABILITY_WEIGHT = 5.0


@dataclass(frozen=True)
class SegmentDefaults:
    """Provenance applied when a raw record does not carry its own."""
    source_type: SourceType = SourceType.MANUAL
    source: Optional[str] = None
    unverified: bool = False


USER_DEFAULTS = SegmentDefaults(SourceType.MANUAL, "local-user")
AI_DEFAULTS = SegmentDefaults(SourceType.LOCAL_AI, "local-ai", unverified=True)


def community_defaults(source_name: str) -> SegmentDefaults:
    """Defaults for records loaded from a bundled or community database."""
    return SegmentDefaults(SourceType.COMMUNITY, source_name)


@dataclass(frozen=True)
class ParseResult:
    """Outcome of parsing one raw record: a segment or a rejection reason."""
    segment: Optional[Segment] = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.segment is not None


def _to_number(value: Any) -> float:
    """Coerce a raw value to float, NaN when it is not numeric."""
    if value is None or isinstance(value, (list, dict)):
        return math.nan
    if isinstance(value, bool):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _counter(raw: Mapping[str, Any], key: str, upper: int) -> int:
    value = _to_number(raw.get(key))
    if not math.isfinite(value):
        value = 0
    return int(_clamp(value, 0, upper))


def _source_type(raw: Mapping[str, Any], defaults: SegmentDefaults) -> SourceType:
    value = raw.get("source_type")
    if not value:
        return defaults.source_type
    try:
        return SourceType(str(value).lower())
    except ValueError:
        logger.debug(f"Unknown source_type {value!r}, using {defaults.source_type.value}")
        return defaults.source_type


def parse_segment(raw: Any, defaults: SegmentDefaults = SegmentDefaults()) -> ParseResult:
    """
    Parse one raw record into a Segment.

    Rejects the record when start/end are not finite numbers, when
    ``end <= start``, or when the type is not a known category. Counters
    that are out of range are clamped, not rejected.

    Args:
        raw: Mapping with at least start, end and type (a Segment is accepted too)
        defaults: Provenance used when the record omits it

    Returns:
        ParseResult with either the segment or the rejection reason
    """
    if isinstance(raw, Segment):
        raw = raw.to_dict()
    if not isinstance(raw, Mapping):
        return ParseResult(reason=f"not a mapping: {type(raw).__name__}")

    start = _to_number(raw.get("start"))
    end = _to_number(raw.get("end"))
    if not math.isfinite(start) or not math.isfinite(end):
        return ParseResult(reason="start/end are not finite numbers")
    if end <= start:
        return ParseResult(reason=f"empty or inverted range {start}-{end}")

    try:
        segment_type = SegmentType(str(raw.get("type") or "").lower())
    except ValueError:
        return ParseResult(reason=f"unknown type {raw.get('type')!r}")

    source_type = _source_type(raw, defaults)
    source = str(raw.get("source") or defaults.source or source_type.value)

    confidence = _to_number(raw.get("confidence_score"))
    if not math.isfinite(confidence):
        confidence = source_type.default_confidence

    reliability = _to_number(raw.get("reliability_weight"))
    if not math.isfinite(reliability) or reliability == 0:
        reliability = 1.0

    unverified = raw.get("unverified", defaults.unverified)

    segment = Segment(
        start=round(start, 3),
        end=round(end, 3),
        type=segment_type,
        source_type=source_type,
        source=source,
        confidence_score=int(round(_clamp(confidence, 0, 100))),
        confirmations=_counter(raw, "confirmations", MAX_CONFIRMATIONS),
        votes_up=_counter(raw, "votes_up", MAX_VOTES),
        votes_down=_counter(raw, "votes_down", MAX_VOTES),
        reports=_counter(raw, "reports", MAX_REPORTS),
        reliability_weight=_clamp(reliability, 0, MAX_RELIABILITY_WEIGHT),
        unverified=bool(unverified) or source_type == SourceType.LOCAL_AI,
    )
    # Rounding to milliseconds can collapse a sub-millisecond range
    if segment.end <= segment.start:
        return ParseResult(reason="range collapses at millisecond precision")
    return ParseResult(segment=segment)


def normalize(raw: Any, defaults: SegmentDefaults = SegmentDefaults()) -> Optional[Segment]:
    """Normalize a raw record, returning None when it is rejected."""
    result = parse_segment(raw, defaults)
    if not result.ok:
        logger.debug(f"Dropped segment: {result.reason}")
    return result.segment


def parse_many(raw_segments: Any, defaults: SegmentDefaults = SegmentDefaults()) -> List[Segment]:
    """
    Parse a batch of raw records, silently dropping the invalid ones.

    Anything that is not a list is treated as an empty batch.
    """
    if not isinstance(raw_segments, (list, tuple)):
        return []

    segments = []
    for raw in raw_segments:
        segment = normalize(raw, defaults)
        if segment is not None:
            segments.append(segment)

    dropped = len(raw_segments) - len(segments)
    if dropped:
        logger.debug(f"Dropped {dropped} of {len(raw_segments)} segments during parsing")
    return segments


def sanitize_segment_map(
    raw_map: Any,
    defaults: SegmentDefaults = SegmentDefaults()
) -> Dict[str, List[Segment]]:
    """
    Validate a persisted movie id -> segments mapping.

    Blank movie ids, invalid segments and movies left without segments are
    dropped; each remaining list is sorted by (start, end).
    """
    if not isinstance(raw_map, Mapping):
        return {}

    output: Dict[str, List[Segment]] = {}
    for movie_id, raw_segments in raw_map.items():
        if not isinstance(movie_id, str) or not movie_id.strip():
            continue
        segments = sort_segments(parse_many(raw_segments, defaults))
        if segments:
            output[movie_id] = segments
    return output


def _plain(segment: Segment) -> Segment:
    if isinstance(segment, ScoredSegment):
        return segment.without_metrics()
    return segment


def serialize_segment_map(segment_map: Mapping[str, Iterable[Segment]]) -> Dict[str, List[Dict[str, Any]]]:
    """Convert a movie id -> segments mapping back to plain dictionaries."""
    return {
        movie_id: [_plain(segment).to_dict() for segment in segments]
        for movie_id, segments in segment_map.items()
    }
