"""
Offline detection from a subtitle file.

Replays an SRT file through the heuristic detector as if the video were
playing, so candidate segments can be collected for a movie before anyone
watches it. Only the subtitle channel has input in this mode.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from ..config import DetectorConfig
from ..segments import Segment
from .detector import HeuristicDetector
from .media import MediaSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubtitleCue:
    """One subtitle block."""
    start: float
    end: float
    text: str


def _parse_timestamp(value: str) -> float:
    """Convert an SRT timestamp (00:00:20,000) to seconds."""
    hours, minutes, seconds = value.strip().replace(',', '.').split(':')
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def parse_srt(path: Path) -> List[SubtitleCue]:
    """
    Parse an SRT file into cues.

    Blocks with a malformed timing line are skipped.
    """
    content = Path(path).read_text(encoding='utf-8', errors='replace')
    content = content.replace('\r\n', '\n').replace('\r', '\n')

    cues = []
    for block in content.strip().split('\n\n'):
        lines = block.strip().split('\n')
        if len(lines) < 3 or '-->' not in lines[1]:
            continue
        start_str, end_str = lines[1].split('-->', 1)
        try:
            start = _parse_timestamp(start_str)
            end = _parse_timestamp(end_str.split()[0])
        except (ValueError, IndexError):
            logger.debug(f"Skipping subtitle block with bad timing: {lines[1]!r}")
            continue
        cues.append(SubtitleCue(start, end, " ".join(lines[2:])))

    logger.info(f"Parsed {len(cues)} subtitle cues from {Path(path).name}")
    return cues


class SubtitleReplaySource(MediaSource):
    """A silent, imageless video whose only content is its subtitle track."""

    def __init__(self, cues: List[SubtitleCue]):
        self.cues = cues
        self.position = 0.0

    @property
    def current_time(self) -> float:
        return self.position

    @property
    def paused(self) -> bool:
        return False

    @property
    def ready(self) -> bool:
        return False

    @property
    def duration(self) -> float:
        return max((cue.end for cue in self.cues), default=0.0)

    def active_cues(self) -> List[str]:
        return [cue.text for cue in self.cues if cue.start <= self.position < cue.end]


def scan_subtitles(path: Path, config: DetectorConfig = None) -> List[Segment]:
    """
    Run the detector over a subtitle file at normal playback speed.

    Playback time and the detector clock advance together by one cadence
    step per pass, so cooldowns behave as they would live.

    Returns:
        Emitted candidate segments, in emission order
    """
    config = config or DetectorConfig()
    source = SubtitleReplaySource(parse_srt(path))
    now = [0.0]
    found: List[Segment] = []

    detector = HeuristicDetector(source, found.extend, config, clock=lambda: now[0])
    detector.start(background=False)
    try:
        end = source.duration
        while source.position <= end:
            detector.tick()
            source.position += config.cadence
            now[0] += config.cadence
    finally:
        detector.stop()

    logger.info(f"Subtitle scan of {Path(path).name} produced {len(found)} candidates")
    return found
