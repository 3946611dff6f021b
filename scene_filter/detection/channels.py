"""
Signal channels for the heuristic detector.

Each channel looks at one aspect of the playing video and pushes an
observation into the shared signal buffer when something stands out:

- Audio: a sudden rise in overall loudness over its moving average
- Subtitles: a sensitive keyword in an active cue
- Visual: a large change in frame brightness between samples (a hard cut)

None of these is evidence on its own; the detector fuses them.
"""

import logging
import re
import time
from typing import Callable, Iterable, Optional, Tuple

import numpy as np

from ..segments.models import SegmentType
from .media import AudioTap, MediaSource
from .signals import Observation, SignalBuffer, SignalKind

logger = logging.getLogger(__name__)

NUDITY_PATTERN = re.compile(r"(nudity|nude|topless|breast|genital|strip)", re.IGNORECASE)
SEXUAL_PATTERN = re.compile(r"(sex|sexual|kiss|bed|naked|erotic|intercourse)", re.IGNORECASE)

# Every 6th pixel of the downsampled frame contributes to the signature
SIGNATURE_STRIDE = 6


def classify_cue(text: str) -> Optional[SegmentType]:
    """Category suggested by a subtitle cue; nudity wins when both match."""
    if not text:
        return None
    if NUDITY_PATTERN.search(text):
        return SegmentType.NUDITY
    if SEXUAL_PATTERN.search(text):
        return SegmentType.SEXUAL
    return None


class AudioSpikeChannel:
    """
    Loudness spike detection against an exponential moving average.

    Args:
        smoothing: Weight of the previous average (0.92 keeps ~12 samples of memory)
        warmup: Samples to collect before spikes are reported
        ratio: Level must exceed the average by this factor
        floor: Level must also exceed this absolute value (0-255 scale)
    """

    def __init__(self, smoothing: float = 0.92, warmup: int = 8,
                 ratio: float = 1.55, floor: float = 55.0):
        self.smoothing = smoothing
        self.warmup = warmup
        self.ratio = ratio
        self.floor = floor
        self.tap: Optional[AudioTap] = None
        self.average = 0.0
        self.samples = 0

    def attach(self, tap: Optional[AudioTap]) -> None:
        self.tap = tap
        self.average = 0.0
        self.samples = 0

    def release(self) -> None:
        """Close the audio tap, if any."""
        tap, self.tap = self.tap, None
        if tap is None:
            return
        try:
            tap.close()
        except Exception as e:
            logger.debug(f"Audio tap close failed: {e}")

    def sample(self, media_time: float, buffer: SignalBuffer) -> Optional[Observation]:
        if self.tap is None:
            return None

        spectrum = np.asarray(self.tap.read_spectrum(), dtype=np.float64)
        if spectrum.size == 0:
            return None

        level = float(spectrum.mean())
        self.average = (self.average * self.smoothing) + (level * (1.0 - self.smoothing))
        self.samples += 1

        if self.samples < self.warmup:
            return None
        if level > self.average * self.ratio and level > self.floor:
            return buffer.push(SignalKind.AUDIO, media_time, level=level)
        return None


class SubtitleKeywordChannel:
    """Keyword matching over the cues currently on screen."""

    def __init__(self, cooldown: float = 1.2, clock: Callable[[], float] = time.monotonic):
        self.cooldown = cooldown
        self._clock = clock
        self._last_hit: Optional[float] = None

    def reset(self) -> None:
        self._last_hit = None

    def sample(self, media_time: float, cues: Iterable, buffer: SignalBuffer) -> Optional[Observation]:
        now = self._clock()
        if self._last_hit is not None and now - self._last_hit < self.cooldown:
            return None

        for cue in cues or []:
            text = cue if isinstance(cue, str) else getattr(cue, "text", "")
            match = classify_cue(text or "")
            if match is None:
                continue
            self._last_hit = now
            return buffer.push(SignalKind.SUBTITLE, media_time, match=match.value, text=text)
        return None


def frame_signature(frame: np.ndarray, grid: Tuple[int, int] = (64, 36)) -> float:
    """
    Brightness signature of a frame.

    The frame is point-sampled down to ``grid`` (width, height) and the RGB
    values of every 6th grid pixel are summed.
    """
    frame = np.asarray(frame)
    if frame.ndim != 3 or frame.shape[2] < 3:
        raise ValueError(f"Expected an HxWx3 frame, got shape {frame.shape}")

    width, height = grid
    rows = np.linspace(0, frame.shape[0] - 1, height).astype(int)
    cols = np.linspace(0, frame.shape[1] - 1, width).astype(int)
    small = frame[rows][:, cols, :3].reshape(-1, 3)
    return float(small[::SIGNATURE_STRIDE].astype(np.int64).sum())


class VisualCutChannel:
    """
    Hard-cut detection from frame signature deltas.

    The first capture error disables the channel for the rest of the
    session; protected or cross-origin video cannot be read back.
    """

    def __init__(self, delta: float = 0.32, grid: Tuple[int, int] = (64, 36)):
        self.delta = delta
        self.grid = tuple(grid)
        self.disabled = False
        self._previous: Optional[float] = None

    def reset(self) -> None:
        self._previous = None

    def sample(self, media_time: float, source: MediaSource, buffer: SignalBuffer) -> Optional[Observation]:
        if self.disabled or not source.ready:
            return None

        try:
            signature = frame_signature(source.capture_frame(), self.grid)
        except Exception as e:
            self.disabled = True
            logger.warning(f"Frame capture unavailable, visual channel disabled: {e}")
            return None

        previous, self._previous = self._previous, signature
        if previous is None:
            return None

        change = abs(signature - previous) / max(previous, 1.0)
        if change > self.delta:
            return buffer.push(SignalKind.VISUAL, media_time, change=change)
        return None
