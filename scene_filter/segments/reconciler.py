"""
Multi-source segment reconciliation.

Two merge operations live here:

- ``reconcile`` builds the per-movie view from the remote (bundled or
  community), user and heuristic sources: dedup by segment id, trust
  scoring, veto filtering, sorting.
- ``merge_into`` folds incoming segments into a persisted collection
  (bulk import, detector output) under an explicit conflict policy.

Both are pure functions over their inputs.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Sequence, Union

from ..error_handler import InvalidPolicyError
from .models import ScoredSegment, Segment, sort_segments
from .trust import apply_trust_metrics

logger = logging.getLogger(__name__)


class MergePolicy(str, Enum):
    """How ``merge_into`` resolves conflicting same-type segments."""
    PREFER_EXISTING = "prefer-existing"  # Conflict -> skip incoming
    PREFER_IMPORTED = "prefer-imported"  # Conflict -> replace existing
    KEEP_BOTH = "keep-both"              # Conflict -> keep both, overlapping


DEFAULT_POLICY = MergePolicy.PREFER_EXISTING


def resolve_policy(policy: Union[str, MergePolicy, None], strict: bool = False) -> MergePolicy:
    """
    Map a policy name to a MergePolicy.

    Unknown names fall back to ``prefer-existing``. With ``strict=True``
    they raise InvalidPolicyError instead.
    """
    if isinstance(policy, MergePolicy):
        return policy
    try:
        return MergePolicy(str(policy).strip().lower())
    except ValueError:
        if strict:
            raise InvalidPolicyError(policy)
        if policy is not None:
            logger.warning(f"Unknown merge policy {policy!r}, using {DEFAULT_POLICY.value}")
        return DEFAULT_POLICY


@dataclass
class MergeSummary:
    """Result of ``merge_into``."""
    segments: List[Segment] = field(default_factory=list)
    added: int = 0
    replaced: int = 0
    skipped: int = 0

    def counts(self) -> Dict[str, int]:
        return {"added": self.added, "replaced": self.replaced, "skipped": self.skipped}


def dedupe(segments: Iterable[Segment]) -> List[Segment]:
    """Drop segments whose segment id was already seen (first one wins)."""
    seen: Dict[str, Segment] = {}
    for segment in segments:
        key = segment.segment_id
        if key not in seen:
            seen[key] = segment
    return list(seen.values())


def reconcile(
    remote: Sequence[Segment],
    user: Sequence[Segment],
    ai: Sequence[Segment]
) -> List[ScoredSegment]:
    """
    Merge one movie's segments from every source into the display list.

    Sources are concatenated remote, user, AI, so on an exact segment id
    collision remote wins over user and user over AI. Ignored segments are
    dropped after scoring.

    Args:
        remote: Bundled or community segments
        user: Manually entered segments
        ai: Heuristic detector segments

    Returns:
        Scored segments sorted by (start, end)
    """
    combined = [*remote, *user, *ai]
    unique = dedupe(combined)
    scored = apply_trust_metrics(unique)

    if len(unique) < len(combined):
        logger.debug(f"Deduplicated {len(combined)} segments into {len(unique)}")

    return sort_segments(scored)


def merge_into(
    existing: Sequence[Segment],
    incoming: Iterable[Segment],
    policy: Union[str, MergePolicy] = DEFAULT_POLICY
) -> MergeSummary:
    """
    Merge incoming segments into an existing collection.

    An incoming segment equal to one already present (same type, both ends
    within 10ms) is skipped. Otherwise the same-type segments it overlaps
    are its conflicts, handled per policy:

    - prefer-existing: skip the incoming segment
    - prefer-imported: remove every conflicting segment, then add it
    - keep-both: add it and keep the overlap

    Args:
        existing: Current collection (not modified)
        incoming: Segments to merge in, in order
        policy: MergePolicy or its name; unknown names mean prefer-existing

    Returns:
        MergeSummary with the new sorted collection and the counts
    """
    policy = resolve_policy(policy)
    base = list(existing)
    summary = MergeSummary()

    for segment in incoming:
        if any(item.same_as(segment) for item in base):
            summary.skipped += 1
            continue

        conflicts = [item for item in base if item.conflicts_with(segment)]

        if conflicts and policy == MergePolicy.PREFER_EXISTING:
            summary.skipped += 1
            continue

        if conflicts and policy == MergePolicy.PREFER_IMPORTED:
            base = [item for item in base if not item.conflicts_with(segment)]
            summary.replaced += len(conflicts)

        base.append(segment)
        summary.added += 1

    summary.segments = sort_segments(base)
    return summary


def cap_recent(segments: Sequence[Segment], limit: int) -> List[Segment]:
    """Keep the last ``limit`` segments of an already sorted collection."""
    if limit <= 0:
        return []
    return list(segments[-limit:])
