"""
Configuration loader for Scene Filter.

Loads settings from a YAML config file with sensible defaults, and
normalizes the user-facing filter state that drives the auto-apply gate.
"""

import logging
import math
from dataclasses import dataclass, field, asdict, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from .logging_config import setup_logging
from .segments.gate import SafeMode
from .sources.community import DEFAULT_MIRRORS

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY_ACTIONS = {
    "sexual": "skip",
    "nudity": "blur",
}

# Settings persisted by the original browser build used camelCase keys
_CAMEL_CASE = {
    "auto_detect": "autoDetect",
    "adaptive_mode": "adaptiveMode",
    "audio_only_mode": "audioOnlyMode",
    "safe_mode": "safeMode",
    "confidence_threshold": "confidenceThreshold",
    "debug_mode": "debugMode",
    "preview_before_skip": "previewBeforeSkip",
    "auto_skip_delay_sec": "autoSkipDelaySec",
    "community_sync_enabled": "communitySyncEnabled",
    "metadata_lookup_enabled": "metadataLookupEnabled",
    "category_actions": "categoryActions",
    "selected_movie": "selectedMovie",
}

_BOOLEAN_SETTINGS = (
    "enabled",
    "auto_detect",
    "adaptive_mode",
    "audio_only_mode",
    "debug_mode",
    "preview_before_skip",
    "community_sync_enabled",
    "metadata_lookup_enabled",
)


def _lookup(data: Mapping[str, Any], name: str) -> Any:
    if name in data:
        return data[name]
    return data.get(_CAMEL_CASE.get(name, name))


def _clamped_number(value: Any, fallback: float, low: float, high: float) -> float:
    """Number in [low, high]; zero or non-numeric input means ``fallback``."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = math.nan
    if not math.isfinite(number) or number == 0:
        number = fallback
    return max(low, min(high, number))


@dataclass
class FilterState:
    """
    User-facing filter settings.

    Attributes:
        safe_mode: OFF, LIGHT, MEDIUM or STRICT
        confidence_threshold: Can only raise the safe mode's floor (0-100)
        category_actions: Playback action per category (skip, blur, mute, none)
        adaptive_mode: Speed through short segments instead of skipping them
        audio_only_mode: Mute instead of blurring
        debug_mode: Show markers for every segment, not just auto-applied ones
        selected_movie: {imdbID, title, year} of the movie being watched
    """
    enabled: bool = True
    auto_detect: bool = True
    adaptive_mode: bool = True
    audio_only_mode: bool = False
    safe_mode: str = SafeMode.MEDIUM.value
    confidence_threshold: float = 70
    debug_mode: bool = True
    preview_before_skip: bool = True
    auto_skip_delay_sec: float = 2
    community_sync_enabled: bool = False
    metadata_lookup_enabled: bool = False
    category_actions: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_CATEGORY_ACTIONS))
    selected_movie: Optional[Dict[str, Any]] = None

    @property
    def movie_id(self) -> Optional[str]:
        if not self.selected_movie:
            return None
        return self.selected_movie.get("imdbID") or None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "FilterState":
        """Build a state from untrusted input, falling back to defaults."""
        return cls().merged(data or {}, keep_movie=False)

    def merged(self, incoming: Mapping[str, Any], keep_movie: bool = True) -> "FilterState":
        """
        Apply a partial settings update on top of this state.

        Values of the wrong type are ignored; an unknown safe mode keeps the
        current one.
        """
        values: Dict[str, Any] = {}

        for name in _BOOLEAN_SETTINGS:
            value = _lookup(incoming, name)
            values[name] = value if isinstance(value, bool) else getattr(self, name)

        mode = SafeMode.parse(_lookup(incoming, "safe_mode"))
        values["safe_mode"] = mode.value if mode else self.safe_mode

        raw_threshold = _lookup(incoming, "confidence_threshold")
        values["confidence_threshold"] = (
            self.confidence_threshold if raw_threshold is None
            else _clamped_number(raw_threshold, self.confidence_threshold, 0, 100)
        )

        raw_delay = _lookup(incoming, "auto_skip_delay_sec")
        values["auto_skip_delay_sec"] = (
            self.auto_skip_delay_sec if raw_delay is None
            else _clamped_number(raw_delay, self.auto_skip_delay_sec, 0, 10)
        )

        actions = _lookup(incoming, "category_actions")
        actions = actions if isinstance(actions, Mapping) else {}
        values["category_actions"] = {
            category: str(actions.get(category) or current)
            for category, current in self.category_actions.items()
        }

        movie = _lookup(incoming, "selected_movie")
        if isinstance(movie, Mapping):
            values["selected_movie"] = dict(movie)
        else:
            values["selected_movie"] = self.selected_movie if keep_movie else None

        return FilterState(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DetectorConfig:
    """Tuning for the heuristic signal detector."""
    cadence: float = 1.2               # Seconds between sampling passes
    buffer_window: float = 5.0         # Wall-clock seconds observations are kept
    fusion_window: float = 2.2         # Media seconds signals count as co-occurring
    seek_jump_threshold: float = 2.2   # Media-time jump treated as an implicit seek
    interaction_guard: float = 1.8     # Freeze after seek/double-click/rate change
    seek_guard: float = 2.2            # Freeze after an implicit seek
    subtitle_cooldown: float = 1.2
    audio_smoothing: float = 0.92      # Weight of the old moving average
    audio_warmup: int = 8
    audio_spike_ratio: float = 1.55
    audio_floor: float = 55.0
    visual_delta: float = 0.32
    frame_grid: Tuple[int, int] = (64, 36)
    emitted_capacity: int = 300
    duplicate_tolerance: float = 2.0


@dataclass
class SourcesConfig:
    """Where bundled and community segments come from."""
    bundled_path: str = ""
    community_urls: List[Dict[str, str]] = field(default_factory=lambda: [dict(m) for m in DEFAULT_MIRRORS])
    cache_ttl_seconds: float = 300
    metadata_ttl_seconds: float = 24 * 60 * 60
    request_timeout: int = 10


@dataclass
class StorageConfig:
    """Local key-value store."""
    path: str = str(Path.home() / ".scenefilter" / "store.json")
    ai_segment_limit: int = 300


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    log_file: str = ""
    debug_mode: bool = False          # Extra detailed log file with line numbers


@dataclass
class Config:
    """Main configuration container."""
    filter: FilterState = field(default_factory=FilterState)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    sources: SourcesConfig = field(default_factory=SourcesConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """
        Load configuration from YAML file.

        If no path is provided, uses default values.
        Missing keys in the config file will use defaults.
        """
        config = cls()

        if config_path and config_path.exists():
            logger.info(f"Loading configuration from {config_path}")
            with open(config_path, 'r') as f:
                data = yaml.safe_load(f)

            if not isinstance(data, dict):
                if data is not None:
                    logger.warning(f"Ignoring {config_path}: top level is not a mapping")
                data = {}

            if isinstance(data.get('filter'), dict):
                config.filter = FilterState.from_dict(data['filter'])

            for section in ('detector', 'sources', 'storage', 'logging'):
                if not isinstance(data.get(section), dict):
                    continue
                target = getattr(config, section)
                known = {f.name for f in fields(target)}
                for key, value in data[section].items():
                    if key in known:
                        setattr(target, key, value)

            if isinstance(config.detector.frame_grid, list):
                config.detector.frame_grid = tuple(config.detector.frame_grid)

        return config

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        setup_logging(
            level=self.logging.level,
            log_file=self.logging.log_file or None,
            debug_mode=self.logging.debug_mode,
        )

    def save(self, config_path: Path) -> None:
        """Save configuration to YAML file."""
        data = asdict(self)
        data['detector']['frame_grid'] = list(self.detector.frame_grid)
        logger.info(f"Saving configuration to {config_path}")

        with open(config_path, 'w') as f:
            yaml.dump(data, f, default_flow_style=False)
