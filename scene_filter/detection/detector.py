"""
Heuristic in-playback detector.

Samples the playing video on a fixed cadence, collects channel signals
into a short rolling buffer, and fuses co-occurring signals into candidate
segments. Candidates are low-confidence local_ai segments; they only reach
playback when the user's threshold lets them through.

Fusion rules, checked against signals within the fusion window of the
current media time:

- A subtitle keyword alone is enough: [t-0.4, t+4.2], confidence 64,
  typed by the keyword that matched.
- Otherwise an audio spike together with a visual cut: [t-0.3, t+2.4],
  confidence 48, typed sexual.

User interaction (seek, double-click, rate change) and implicit seeks
freeze emission for a short while so scrubbing does not produce bursts of
false positives.
"""

import logging
import math
import threading
import time
from collections import deque
from enum import Enum
from typing import Callable, Deque, List, Optional

from ..config import DetectorConfig
from ..segments import AI_DEFAULTS, Segment, SegmentType, normalize
from .channels import AudioSpikeChannel, SubtitleKeywordChannel, VisualCutChannel
from .media import MediaSource
from .signals import SignalBuffer, SignalKind

logger = logging.getLogger(__name__)

SUBTITLE_LEAD = 0.4
SUBTITLE_TAIL = 4.2
SUBTITLE_CONFIDENCE = 64

AUDIOVISUAL_LEAD = 0.3
AUDIOVISUAL_TAIL = 2.4
AUDIOVISUAL_CONFIDENCE = 48

MIN_EMIT_CONFIDENCE = 10
MAX_EMIT_CONFIDENCE = 80

DETECTOR_SOURCE = "local-ai"


class DetectorState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    SUPPRESSED = "suppressed"


class HeuristicDetector:
    """
    Fuses audio, subtitle and visual signals into candidate segments.

    Args:
        source: The playing video
        on_segments: Called with a list of newly emitted segments
        config: Detector tuning
        clock: Monotonic time source, injectable for tests

    Example:
        >>> detector = HeuristicDetector(player, lambda segs: store.add_heuristic_segments(movie_id, segs))
        >>> detector.start()
        >>> ...
        >>> detector.stop()
    """

    def __init__(
        self,
        source: MediaSource,
        on_segments: Callable[[List[Segment]], None],
        config: Optional[DetectorConfig] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.source = source
        self.on_segments = on_segments
        self.config = config or DetectorConfig()
        self._clock = clock

        self.buffer = SignalBuffer(self.config.buffer_window, clock)
        self.audio = AudioSpikeChannel(
            smoothing=self.config.audio_smoothing,
            warmup=self.config.audio_warmup,
            ratio=self.config.audio_spike_ratio,
            floor=self.config.audio_floor,
        )
        self.subtitles = SubtitleKeywordChannel(self.config.subtitle_cooldown, clock)
        self.visual = VisualCutChannel(self.config.visual_delta, self.config.frame_grid)

        self.emitted: Deque[Segment] = deque(maxlen=self.config.emitted_capacity)
        self.blocked_until = 0.0
        self.last_time: Optional[float] = None

        self._running = False
        self._lock = threading.RLock()
        # One event per run; a worker only ever watches the event it was started with
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> DetectorState:
        if not self._running:
            return DetectorState.STOPPED
        if self._clock() < self.blocked_until:
            return DetectorState.SUPPRESSED
        return DetectorState.RUNNING

    @property
    def running(self) -> bool:
        return self._running

    def start(self, background: bool = True) -> None:
        """
        Open the audio tap and start sampling.

        With ``background=False`` no thread is started and the host drives
        sampling by calling ``tick`` itself.
        """
        with self._lock:
            if self._running:
                return

            try:
                self.audio.attach(self.source.open_audio_tap())
            except Exception as e:
                logger.warning(f"Audio analysis unavailable: {e}")
                self.audio.attach(None)

            self._running = True
            stop_event = threading.Event()
            self._stop_event = stop_event
            logger.info("Heuristic detector started")

            if background:
                self._thread = threading.Thread(
                    target=self._run,
                    args=(stop_event,),
                    name="heuristic-detector",
                    daemon=True,
                )
                self._thread.start()

    def stop(self) -> None:
        """
        Stop sampling and release the audio tap and buffers.

        Safe to call from ``on_segments``: the worker thread finishes its
        current pass and exits on its own.
        """
        with self._lock:
            if not self._running:
                return
            self._running = False
            if self._stop_event is not None:
                self._stop_event.set()
            self._stop_event = None
            self.audio.release()
            self.subtitles.reset()
            self.visual.reset()
            self.buffer.clear()
            self.emitted.clear()
            self.last_time = None
            self.blocked_until = 0.0
            thread, self._thread = self._thread, None

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.config.cadence * 2)
        logger.info("Heuristic detector stopped")

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.config.cadence):
            try:
                self._tick(stop_event)
            except Exception as e:
                logger.error(f"Detector tick failed: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _suppress(self, seconds: float) -> None:
        self.blocked_until = max(self.blocked_until, self._clock() + seconds)

    def notify_interaction(self, kind: str = "seek") -> None:
        """Freeze emission after a seek, double-click or playback rate change."""
        with self._lock:
            if not self._running:
                return
            self._suppress(self.config.interaction_guard)
            logger.debug(f"Detector suppressed after {kind}")

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------

    def tick(self) -> List[Segment]:
        """
        Run one sampling pass.

        Returns:
            Segments emitted by this pass (at most one)
        """
        return self._tick(None)

    def _tick(self, stop_event: Optional[threading.Event]) -> List[Segment]:
        with self._lock:
            # A worker from an earlier run may wake up after a restart
            if stop_event is not None and stop_event.is_set():
                return []
            segments = self._sample()
        self._deliver(segments)
        return segments

    def _sample(self) -> List[Segment]:
        if not self._running or self._clock() < self.blocked_until:
            return []

        t = self.source.current_time
        if self.source.paused or t is None or not math.isfinite(t):
            return []

        if self.last_time is not None and abs(t - self.last_time) > self.config.seek_jump_threshold:
            logger.debug(f"Playback jumped {self.last_time:.1f}s -> {t:.1f}s, suppressing")
            self._suppress(self.config.seek_guard)
            self.last_time = t
            return []
        self.last_time = t

        self.audio.sample(t, self.buffer)
        self.subtitles.sample(t, self.source.active_cues(), self.buffer)
        self.visual.sample(t, self.source, self.buffer)

        return self._fuse(t)

    def fuse(self, t: float) -> List[Segment]:
        """Turn signals near media time ``t`` into at most one candidate."""
        with self._lock:
            segments = self._fuse(t)
        self._deliver(segments)
        return segments

    def _fuse(self, t: float) -> List[Segment]:
        near = self.buffer.near(t, self.config.fusion_window)
        kinds = {o.kind for o in near}

        if SignalKind.SUBTITLE in kinds:
            subtitle = next(o for o in near if o.kind == SignalKind.SUBTITLE)
            segment_type = subtitle.payload.get("match", SegmentType.SEXUAL.value)
            return self._record(t - SUBTITLE_LEAD, t + SUBTITLE_TAIL, segment_type, SUBTITLE_CONFIDENCE)

        if SignalKind.AUDIO in kinds and SignalKind.VISUAL in kinds:
            return self._record(t - AUDIOVISUAL_LEAD, t + AUDIOVISUAL_TAIL,
                                SegmentType.SEXUAL.value, AUDIOVISUAL_CONFIDENCE)

        return []

    def _deliver(self, segments: List[Segment]) -> None:
        # Called without the lock held; the callback may write to disk or stop the detector
        if segments:
            self.on_segments(segments)

    def _is_duplicate(self, segment: Segment) -> bool:
        tolerance = self.config.duplicate_tolerance
        return any(
            prior.type == segment.type
            and abs(prior.start - segment.start) < tolerance
            and abs(prior.end - segment.end) < tolerance
            for prior in self.emitted
        )

    def emit(self, start: float, end: float, segment_type: str, confidence: float) -> List[Segment]:
        """
        Normalize a candidate and hand it to ``on_segments``.

        Starts are clamped at zero and confidence to 10-80. Candidates close
        to something already emitted this session are dropped.
        """
        with self._lock:
            segments = self._record(start, end, segment_type, confidence)
        self._deliver(segments)
        return segments

    def _record(self, start: float, end: float, segment_type: str, confidence: float) -> List[Segment]:
        segment = normalize({
            "start": max(0.0, start),
            "end": max(0.0, end),
            "type": segment_type,
            "source_type": "local_ai",
            "source": DETECTOR_SOURCE,
            "confidence_score": max(MIN_EMIT_CONFIDENCE, min(MAX_EMIT_CONFIDENCE, confidence)),
            "unverified": True,
        }, AI_DEFAULTS)

        if segment is None or self._is_duplicate(segment):
            return []

        self.emitted.append(segment)
        logger.info(f"Detector emitted {segment!r}")
        return [segment]
