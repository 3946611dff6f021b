"""
Auto-apply gate.

Decides which reconciled segments are applied automatically during
playback, and which effect each one gets. The gate is a pure filter over
already scored segments; it never rescores.
"""

import logging
import math
from enum import Enum
from typing import Any, List, Mapping, Optional, Sequence

from .models import ScoredSegment, Segment

logger = logging.getLogger(__name__)


class SafeMode(str, Enum):
    """Named floor on auto-apply aggressiveness."""
    OFF = "OFF"
    LIGHT = "LIGHT"
    MEDIUM = "MEDIUM"
    STRICT = "STRICT"

    @property
    def floor(self) -> int:
        return SAFE_MODE_FLOORS[self]

    @classmethod
    def parse(cls, value: Any, default: "SafeMode" = None) -> Optional["SafeMode"]:
        """Parse a mode name case-insensitively, returning ``default`` if unknown."""
        try:
            return cls(str(value or "").strip().upper())
        except ValueError:
            return default


# Lower floor = lower bar to auto-apply; OFF sits above the maximum score
SAFE_MODE_FLOORS = {
    SafeMode.OFF: 101,
    SafeMode.LIGHT: 85,
    SafeMode.MEDIUM: 70,
    SafeMode.STRICT: 45,
}

DISABLED_THRESHOLD = SAFE_MODE_FLOORS[SafeMode.OFF]

# Adaptive mode turns a skip of anything shorter than this into a speed-up
ADAPTIVE_SKIP_MAX_DURATION = 3.0


class PlaybackAction(str, Enum):
    """Effect applied to a segment during playback."""
    SKIP = "skip"
    BLUR = "blur"
    MUTE = "mute"
    SPEED = "speed"
    NONE = "none"


def _state_value(state: Any, name: str, alias: str, default: Any = None) -> Any:
    """Read a setting from a FilterState-like object or a raw mapping."""
    if isinstance(state, Mapping):
        if name in state:
            return state[name]
        return state.get(alias, default)
    return getattr(state, name, default)


def _safe_mode(state: Any) -> SafeMode:
    raw = _state_value(state, "safe_mode", "safeMode", SafeMode.MEDIUM.value)
    if isinstance(raw, SafeMode):
        return raw
    return SafeMode.parse(raw, default=SafeMode.MEDIUM)


def threshold(state: Any) -> int:
    """
    Minimum effective confidence for a segment to auto-apply.

    OFF returns 101 so nothing ever qualifies. Otherwise the user threshold
    can only raise the mode floor, never lower it.

    Args:
        state: FilterState or a mapping with safe_mode/confidence_threshold
            (camelCase keys are accepted too)
    """
    mode = _safe_mode(state)
    if mode == SafeMode.OFF:
        return DISABLED_THRESHOLD

    floor = mode.floor
    try:
        custom = float(_state_value(state, "confidence_threshold", "confidenceThreshold"))
    except (TypeError, ValueError):
        custom = math.nan
    # Zero or unparsable falls back to the mode floor
    if not math.isfinite(custom) or custom == 0:
        custom = floor

    # Scores are integers, so a fractional bar rounds up
    return int(math.ceil(max(floor, max(0, min(100, custom)))))


def filter_auto_apply(segments: Sequence[ScoredSegment], state: Any) -> List[ScoredSegment]:
    """Return the segments eligible for automatic effects."""
    if _safe_mode(state) == SafeMode.OFF:
        return []
    bar = threshold(state)
    return [s for s in segments if s.effective_confidence >= bar]


def effective_action(segment: Segment, state: Any) -> PlaybackAction:
    """
    Resolve the playback effect for a segment.

    The category action comes from the state's category mapping. Audio-only
    mode turns a blur into a mute; adaptive mode turns a skip of a short
    segment into a speed-up.
    """
    actions = _state_value(state, "category_actions", "categoryActions", None) or {}
    raw = actions.get(segment.type.value, PlaybackAction.NONE.value)
    try:
        action = PlaybackAction(str(raw).lower())
    except ValueError:
        logger.debug(f"Unknown action {raw!r} for {segment.type.value}, using none")
        action = PlaybackAction.NONE

    if _state_value(state, "audio_only_mode", "audioOnlyMode", False) and action == PlaybackAction.BLUR:
        action = PlaybackAction.MUTE

    if _state_value(state, "adaptive_mode", "adaptiveMode", False) and action == PlaybackAction.SKIP:
        if 0 < segment.duration < ADAPTIVE_SKIP_MAX_DURATION:
            action = PlaybackAction.SPEED

    return action


def segments_for_markers(
    state: Any,
    all_segments: Sequence[ScoredSegment],
    auto_segments: Sequence[ScoredSegment]
) -> List[ScoredSegment]:
    """Timeline markers show everything in debug mode, else only the auto set."""
    if _state_value(state, "debug_mode", "debugMode", False):
        return list(all_segments)
    return list(auto_segments)
