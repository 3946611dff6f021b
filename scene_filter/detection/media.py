"""
Interfaces the detector samples from.

The playing video lives outside this package (a browser element, a
desktop player). Hosts adapt it to ``MediaSource``; audio analysis goes
through an ``AudioTap`` that must be closed when sampling stops.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np


class AudioTap(ABC):
    """Frequency-domain view of the playing audio."""

    @abstractmethod
    def read_spectrum(self) -> np.ndarray:
        """Current magnitude per frequency bin, 0-255."""

    @abstractmethod
    def close(self) -> None:
        """Release the underlying capture."""


class MediaSource(ABC):
    """A playing video as seen by the detector."""

    @property
    @abstractmethod
    def current_time(self) -> float:
        """Playback position in seconds."""

    @property
    @abstractmethod
    def paused(self) -> bool:
        ...

    @property
    def ready(self) -> bool:
        """Whether a decoded frame is available for capture."""
        return True

    def active_cues(self) -> List[str]:
        """Subtitle cues showing right now, from tracks that are not disabled.

        Items are strings or objects with a ``text`` attribute.
        """
        return []

    def capture_frame(self) -> np.ndarray:
        """Current frame as an HxWx3 (or HxWx4) uint8 array."""
        raise NotImplementedError("frame capture not supported by this source")

    def open_audio_tap(self) -> Optional[AudioTap]:
        """Start audio analysis, or return None when unsupported."""
        return None
