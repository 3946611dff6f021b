"""
Heuristic detection of sensitive scenes during playback.
"""

from .media import AudioTap, MediaSource
from .signals import Observation, SignalBuffer, SignalKind
from .channels import (
    AudioSpikeChannel,
    SubtitleKeywordChannel,
    VisualCutChannel,
    classify_cue,
    frame_signature,
)
from .detector import DetectorState, HeuristicDetector
from .replay import SubtitleCue, SubtitleReplaySource, parse_srt, scan_subtitles

__all__ = [
    'AudioTap',
    'MediaSource',
    'Observation',
    'SignalBuffer',
    'SignalKind',
    'AudioSpikeChannel',
    'SubtitleKeywordChannel',
    'VisualCutChannel',
    'classify_cue',
    'frame_signature',
    'DetectorState',
    'HeuristicDetector',
    'SubtitleCue',
    'SubtitleReplaySource',
    'parse_srt',
    'scan_subtitles',
]
