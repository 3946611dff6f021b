"""
Playback snapshots per viewing context.

Each context (a tab, a player window) periodically reports its current
time and duration. Snapshots older than the staleness window are treated
as absent. Nothing here is persisted.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Optional

from .error_handler import OperationResult

logger = logging.getLogger(__name__)

STALE_AFTER_SECONDS = 15.0


@dataclass(frozen=True)
class PlaybackSnapshot:
    """Last reported playback position of a context."""
    current_time: float
    duration: float
    url: str = ""
    title: str = ""
    updated_at: float = 0.0


class PlaybackRegistry:
    """
    Snapshots keyed by context id.

    Args:
        stale_after: Seconds after which a snapshot is ignored
        clock: Monotonic time source, injectable for tests
    """

    def __init__(self, stale_after: float = STALE_AFTER_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.stale_after = stale_after
        self._clock = clock
        self._snapshots: Dict[Hashable, PlaybackSnapshot] = {}

    def update(self, context_id: Optional[Hashable], current_time: float, duration: float,
               url: str = "", title: str = "") -> OperationResult:
        """Record a context's playback position."""
        if context_id is None:
            return OperationResult.failure("No tab context.")

        try:
            current_time = float(current_time)
            duration = float(duration)
        except (TypeError, ValueError):
            return OperationResult.failure("Invalid playback snapshot.")

        if not math.isfinite(current_time) or not math.isfinite(duration) or duration <= 0:
            return OperationResult.failure("Invalid playback snapshot.")

        self._snapshots[context_id] = PlaybackSnapshot(
            current_time=current_time,
            duration=duration,
            url=url or "",
            title=title or "",
            updated_at=self._clock(),
        )
        return OperationResult.success()

    def get(self, context_id: Optional[Hashable]) -> OperationResult:
        """Return the context's snapshot, failing when missing or stale."""
        snapshot = self._snapshots.get(context_id)
        if snapshot is None:
            return OperationResult.failure("No active video snapshot yet. Start video playback first.")

        if self._clock() - snapshot.updated_at > self.stale_after:
            return OperationResult.failure("Video snapshot is stale. Play video and try again.")

        return OperationResult.success(snapshot=snapshot)

    def remove(self, context_id: Hashable) -> None:
        """Forget a context when it closes."""
        if self._snapshots.pop(context_id, None) is not None:
            logger.debug(f"Dropped playback snapshot for context {context_id}")

    def __len__(self) -> int:
        return len(self._snapshots)
