"""
Scene Filter
============

Segment reconciliation, trust scoring and auto-apply gating for filtered
movie playback, with a heuristic in-playback detector.

Segments come from a bundled database, a community database, the user,
and the detector; the gate decides which of them are applied automatically.
"""

__version__ = "0.1.0"
__author__ = "Scene Filter"

# Export key classes for convenience
from .config import Config, FilterState
from .segments import Segment, ScoredSegment, SegmentType, SourceType, SafeMode
from .storage import SegmentStore, MemoryStore, JsonFileStore
from .service import SceneFilterService
