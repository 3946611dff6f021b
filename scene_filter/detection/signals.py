"""
Timestamped detector observations and their rolling buffer.
"""

import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List

DEFAULT_WINDOW = 5.0


class SignalKind(str, Enum):
    """Channel an observation came from."""
    AUDIO = "audio"
    SUBTITLE = "subtitle"
    VISUAL = "visual"


@dataclass(frozen=True)
class Observation:
    """One channel firing at a media time."""
    kind: SignalKind
    media_time: float    # Playback position the observation refers to
    observed_at: float   # Clock time it was recorded, used for expiry
    payload: Dict[str, Any] = field(default_factory=dict)


class SignalBuffer:
    """
    Observations from the last ``window`` seconds of clock time.

    Expiry uses clock time, not media time, so a paused video does not keep
    stale observations alive forever.
    """

    def __init__(self, window: float = DEFAULT_WINDOW, clock: Callable[[], float] = time.monotonic):
        self.window = window
        self._clock = clock
        self._items: Deque[Observation] = deque()

    def push(self, kind: SignalKind, media_time: float, **payload: Any) -> Observation:
        observation = Observation(kind, media_time, self._clock(), dict(payload))
        self._items.append(observation)
        self._prune()
        return observation

    def _prune(self) -> None:
        cutoff = self._clock() - self.window
        while self._items and self._items[0].observed_at < cutoff:
            self._items.popleft()

    def near(self, media_time: float, tolerance: float) -> List[Observation]:
        """Observations whose media time is within ``tolerance`` of ``media_time``."""
        self._prune()
        return [o for o in self._items if abs(o.media_time - media_time) <= tolerance]

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(list(self._items))
