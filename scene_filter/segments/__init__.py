"""
Segment model, validation, trust scoring, reconciliation and gating.
"""

from .models import (
    Segment,
    ScoredSegment,
    SegmentType,
    SourceType,
    sort_segments,
)
from .validator import (
    SegmentDefaults,
    ParseResult,
    USER_DEFAULTS,
    AI_DEFAULTS,
    community_defaults,
    parse_segment,
    normalize,
    parse_many,
    sanitize_segment_map,
    serialize_segment_map,
)
from .trust import TrustScore, score, apply_trust_metrics
from .reconciler import (
    MergePolicy,
    MergeSummary,
    resolve_policy,
    reconcile,
    merge_into,
    cap_recent,
)
from .gate import (
    SafeMode,
    PlaybackAction,
    threshold,
    filter_auto_apply,
    effective_action,
    segments_for_markers,
)

__all__ = [
    'Segment',
    'ScoredSegment',
    'SegmentType',
    'SourceType',
    'sort_segments',
    'SegmentDefaults',
    'ParseResult',
    'USER_DEFAULTS',
    'AI_DEFAULTS',
    'community_defaults',
    'parse_segment',
    'normalize',
    'parse_many',
    'sanitize_segment_map',
    'serialize_segment_map',
    'TrustScore',
    'score',
    'apply_trust_metrics',
    'MergePolicy',
    'MergeSummary',
    'resolve_policy',
    'reconcile',
    'merge_into',
    'cap_recent',
    'SafeMode',
    'PlaybackAction',
    'threshold',
    'filter_auto_apply',
    'effective_action',
    'segments_for_markers',
]
