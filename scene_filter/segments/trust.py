"""
Trust scoring for segments.

Computes the effective confidence of a segment from its provenance and
community feedback, then applies a categorical veto. The veto lets one
strong negative signal (abuse reports, heavy downvoting) override an
otherwise plausible score.

Scoring is deterministic and depends on nothing but the segment itself.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Iterable, List

from .models import ScoredSegment, Segment, SourceType

logger = logging.getLogger(__name__)

# Community adjustments
CONFIRMATION_BONUS = 3
CONFIRMATION_BONUS_CAP = 15
VOTE_BONUS = 2
VOTE_BONUS_CAP = 20
REPORT_PENALTY = 12
REPORT_PENALTY_CAP = 60
FEW_CONFIRMATIONS = 2
FEW_CONFIRMATIONS_PENALTY = 12
COLD_START_VOTES = 2
COLD_START_PENALTY = 8

# Heuristic segments are always penalized relative to their nominal score
LOCAL_AI_PENALTY = 5

# Reports at or above this veto the segment entirely
REPORT_VETO = 3
# Community segments are ignored when downvotes exceed upvotes by more than this
DOWNVOTE_MARGIN = 2


@dataclass(frozen=True)
class TrustScore:
    """Result of scoring a single segment."""
    effective_confidence: int
    ignored: bool


def _adjusted_score(segment: Segment) -> float:
    """Additive/subtractive stage, before clamping and veto."""
    score = float(segment.confidence_score)

    if segment.source_type == SourceType.COMMUNITY:
        score += min(segment.confirmations * CONFIRMATION_BONUS, CONFIRMATION_BONUS_CAP)
        score += min((segment.votes_up - segment.votes_down) * VOTE_BONUS, VOTE_BONUS_CAP)
        score -= min(segment.reports * REPORT_PENALTY, REPORT_PENALTY_CAP)
        if segment.confirmations < FEW_CONFIRMATIONS:
            score -= FEW_CONFIRMATIONS_PENALTY
        if segment.votes_up + segment.votes_down < COLD_START_VOTES:
            score -= COLD_START_PENALTY
    elif segment.source_type == SourceType.LOCAL_AI:
        score -= LOCAL_AI_PENALTY

    return score


def is_ignored(segment: Segment) -> bool:
    """Check whether the segment is vetoed by reports or community consensus."""
    if segment.reports >= REPORT_VETO:
        return True
    if (
        segment.source_type == SourceType.COMMUNITY
        and segment.votes_down > segment.votes_up + DOWNVOTE_MARGIN
    ):
        return True
    return False


def score(segment: Segment) -> TrustScore:
    """
    Score a segment.

    Args:
        segment: A validated segment

    Returns:
        TrustScore with the effective confidence (0-100) and the ignore decision
    """
    value = _adjusted_score(segment)
    if segment.reports >= REPORT_VETO:
        value = 0.0

    effective = int(max(0, min(100, math.floor(value + 0.5))))
    return TrustScore(effective_confidence=effective, ignored=is_ignored(segment))


def apply_trust_metrics(segments: Iterable[Segment]) -> List[ScoredSegment]:
    """
    Attach trust metrics to each segment and drop the ignored ones.

    Ignored segments are excluded entirely rather than kept with a low score.
    """
    scored: List[ScoredSegment] = []
    ignored = 0

    for segment in segments:
        result = score(segment)
        if result.ignored:
            ignored += 1
            continue
        scored.append(_with_metrics(segment, result))

    if ignored:
        logger.debug(f"Ignored {ignored} segments by trust veto")
    return scored


def _with_metrics(segment: Segment, result: TrustScore) -> ScoredSegment:
    if isinstance(segment, ScoredSegment):
        return replace(
            segment,
            effective_confidence=result.effective_confidence,
            ignored_by_trust=result.ignored,
        )
    return ScoredSegment(
        **segment.__dict__,
        effective_confidence=result.effective_confidence,
        ignored_by_trust=result.ignored,
    )
