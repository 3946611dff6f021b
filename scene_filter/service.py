"""
Scene Filter service layer.

Ties the sources, the local segment store, the gate and the playback
registry together into the operations a front end calls: "what should
happen while this movie plays", "save these settings", "add this segment".

Every public operation returns an ``OperationResult``; segment lists in
results are plain dictionaries so they can be sent to any front end as JSON.
``handle`` dispatches named requests and turns unexpected exceptions into
failed results instead of raising.
"""

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable, Dict, Hashable, List, Mapping, Optional, Sequence

from .config import Config, DetectorConfig, FilterState
from .detection import HeuristicDetector, MediaSource
from .error_handler import OperationResult, SourceUnavailableError, handle_error
from .playback import PlaybackRegistry
from .segments import (
    ScoredSegment,
    Segment,
    community_defaults,
    filter_auto_apply,
    parse_many,
    reconcile,
    segments_for_markers,
    threshold,
)
from .sources import BundledDatabase, CommunityDatabase, ParentalGuideClient, TTLCache
from .storage import SETTINGS_KEY, JsonFileStore, KeyValueStore, SegmentStore

logger = logging.getLogger(__name__)

# Automatic movie detection accepts a title match scoring at least this (0-100)
MOVIE_MATCH_MIN_SCORE = 45

NO_SOURCE = "none"


def _dicts(segments: Sequence[Segment]) -> List[Dict[str, Any]]:
    return [segment.to_dict() for segment in segments]


class SceneFilterService:
    """
    Front-end facing operations over one key-value store.

    Args:
        store: Segment store (user and detector segments, settings)
        bundled: Bundled segment database
        community: Community segment database
        metadata: Parental guide client
        playback: Playback snapshot registry
        detector_config: Tuning for detectors created by ``create_detector``
    """

    def __init__(
        self,
        store: SegmentStore,
        bundled: BundledDatabase,
        community: CommunityDatabase,
        metadata: ParentalGuideClient,
        playback: Optional[PlaybackRegistry] = None,
        detector_config: Optional[DetectorConfig] = None,
        default_state: Optional[FilterState] = None
    ):
        self.store = store
        self.bundled = bundled
        self.community = community
        self.metadata = metadata
        self.playback = playback or PlaybackRegistry()
        self.detector_config = detector_config or DetectorConfig()
        self.default_state = default_state or FilterState()
        self.active_source = NO_SOURCE

    @classmethod
    def from_config(cls, config: Config, store: Optional[KeyValueStore] = None) -> "SceneFilterService":
        """Build a service with every collaborator configured from ``config``."""
        sources = config.sources
        return cls(
            store=SegmentStore(
                store if store is not None else JsonFileStore(Path(config.storage.path)),
                ai_segment_limit=config.storage.ai_segment_limit,
            ),
            bundled=BundledDatabase(sources.bundled_path or None, TTLCache(sources.cache_ttl_seconds)),
            community=CommunityDatabase(
                sources.community_urls,
                timeout=sources.request_timeout,
                cache=TTLCache(sources.cache_ttl_seconds),
            ),
            metadata=ParentalGuideClient(
                timeout=sources.request_timeout,
                cache=TTLCache(sources.metadata_ttl_seconds),
            ),
            detector_config=config.detector,
            default_state=config.filter,
        )

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def ensure_defaults(self) -> None:
        """Initialize empty segment maps and default settings on first run."""
        self.store.ensure_defaults()
        if self.store.store.get(SETTINGS_KEY) is None:
            self.store.store.set({SETTINGS_KEY: self.default_state.to_dict()})

    def state(self) -> FilterState:
        """Current settings, normalized."""
        raw = self.store.store.get(SETTINGS_KEY)
        return self.default_state.merged(raw if isinstance(raw, Mapping) else {}, keep_movie=False)

    def _save_state(self, state: FilterState) -> None:
        self.store.store.set({SETTINGS_KEY: state.to_dict()})

    def save_settings(self, incoming: Optional[Mapping[str, Any]]) -> OperationResult:
        """Apply a partial settings update; invalid values keep the current ones."""
        incoming = incoming if isinstance(incoming, Mapping) else {}
        # The movie selection has its own operation
        incoming = {k: v for k, v in incoming.items() if k not in ("selected_movie", "selectedMovie")}
        state = self.state().merged(incoming)
        self._save_state(state)
        logger.info(f"Settings saved: safe_mode={state.safe_mode}, threshold={state.confidence_threshold}")
        return OperationResult.success(state=state.to_dict())

    # ------------------------------------------------------------------
    # Segments for a movie
    # ------------------------------------------------------------------

    def remote_segments(self, movie_id: Optional[str], community_sync: bool) -> List[Segment]:
        """
        Published segments for a movie.

        The community database is used when sync is enabled and it has
        segments for the movie; otherwise the bundled database.
        """
        if not movie_id:
            return []

        if community_sync:
            record = self.community.get(movie_id)
            if record is not None and record.segments:
                self.active_source = self.community.active_source or NO_SOURCE
                return parse_many(record.segments, community_defaults(self.active_source))

        try:
            record = self.bundled.get(movie_id)
        except SourceUnavailableError as e:
            logger.warning(f"{e.user_message}: {e.technical_message}")
            return []

        self.active_source = self.bundled.name
        return parse_many(record.segments if record else [], community_defaults(self.active_source))

    def merged_segments(self, movie_id: Optional[str], state: Optional[FilterState] = None) -> List[ScoredSegment]:
        """Remote, user and detector segments for a movie, scored and sorted."""
        if not movie_id:
            return []
        state = state or self.state()
        return reconcile(
            self.remote_segments(movie_id, state.community_sync_enabled),
            self.store.user_segments(movie_id),
            self.store.ai_segments(movie_id),
        )

    def _segments_payload(self, movie_id: Optional[str], state: Optional[FilterState] = None) -> Dict[str, Any]:
        state = state or self.state()
        segments = self.merged_segments(movie_id, state)
        auto = filter_auto_apply(segments, state)
        return {
            "segments": _dicts(segments),
            "autoSegments": _dicts(auto),
            "markers": _dicts(segments_for_markers(state, segments, auto)),
            "source": self.active_source,
        }

    def state_payload(self) -> OperationResult:
        """Everything a front end needs to render the selected movie."""
        state = self.state()
        movie_id = state.movie_id
        payload = self._segments_payload(movie_id, state)
        metadata = self.metadata.lookup(movie_id, state.metadata_lookup_enabled)
        return OperationResult.success(
            state=state.to_dict(),
            segments=payload["segments"],
            autoSegments=payload["autoSegments"],
            markers=payload["markers"],
            source=payload["source"],
            metadata=metadata.to_dict(),
            threshold=threshold(state),
        )

    def get_state(self) -> OperationResult:
        self.ensure_defaults()
        return self.state_payload()

    def select_movie(self, movie: Optional[Mapping[str, Any]]) -> OperationResult:
        """Persist the movie being watched (None clears it)."""
        state = self.state()
        state.selected_movie = dict(movie) if isinstance(movie, Mapping) else None
        self._save_state(state)
        logger.info(f"Selected movie: {state.movie_id or 'none'}")
        return OperationResult.success(**self._segments_payload(state.movie_id, state))

    def refresh_community(self) -> OperationResult:
        self.community.refresh()
        return OperationResult.success()

    # ------------------------------------------------------------------
    # Local segments
    # ------------------------------------------------------------------

    def add_user_segment(self, movie_id: Optional[str], segment: Any) -> OperationResult:
        result = self.store.add_user_segment(movie_id, segment)
        if not result.ok:
            return result
        return OperationResult.success(**self._segments_payload(movie_id))

    def remove_user_segment(self, movie_id: Optional[str], index: Any) -> OperationResult:
        result = self.store.remove_user_segment(movie_id, index)
        if not result.ok:
            return result
        return OperationResult.success(**self._segments_payload(movie_id))

    def add_heuristic_segments(self, movie_id: Optional[str], segments: Any) -> OperationResult:
        return self.store.add_heuristic_segments(movie_id, segments)

    def local_segments(self, movie_id: Optional[str]) -> OperationResult:
        result = self.store.local_segments_for_movie(movie_id)
        if not result.ok:
            return result
        return OperationResult.success(movieId=movie_id, segments=_dicts(result["segments"]))

    def export_local_db(self) -> OperationResult:
        return OperationResult.success(payload=self.store.export_payload())

    def import_local_db(self, payload: Any, strategy: Any = None) -> OperationResult:
        return self.store.import_payload(payload, strategy)

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def update_playback(self, context_id: Optional[Hashable], payload: Optional[Mapping[str, Any]]) -> OperationResult:
        payload = payload if isinstance(payload, Mapping) else {}
        return self.playback.update(
            context_id,
            payload.get("currentTime", payload.get("current_time")),
            payload.get("duration"),
            url=payload.get("url", ""),
            title=payload.get("title", ""),
        )

    def playback_snapshot(self, context_id: Optional[Hashable]) -> OperationResult:
        result = self.playback.get(context_id)
        if not result.ok:
            return result
        return OperationResult.success(snapshot=asdict(result["snapshot"]))

    def close_context(self, context_id: Hashable) -> None:
        self.playback.remove(context_id)

    # ------------------------------------------------------------------
    # Detector
    # ------------------------------------------------------------------

    def create_detector(self, source: MediaSource, movie_id: Optional[str] = None) -> HeuristicDetector:
        """
        Detector whose candidates are stored as local_ai segments.

        Without ``movie_id`` the candidates go to whichever movie is selected
        when they are emitted.
        """
        def store_candidates(segments: List[Segment]) -> None:
            target = movie_id or self.state().movie_id
            result = self.add_heuristic_segments(target, segments)
            if not result.ok:
                logger.debug(f"Discarded detector output: {result.error}")

        return HeuristicDetector(source, store_candidates, self.detector_config)

    # ------------------------------------------------------------------
    # Request dispatch
    # ------------------------------------------------------------------

    def _handlers(self) -> Dict[str, Callable[[Mapping[str, Any]], OperationResult]]:
        return {
            "getState": lambda m: self.get_state(),
            "saveSettings": lambda m: self.save_settings(m.get("payload")),
            "selectMovie": lambda m: self.select_movie(m.get("movie")),
            "refreshCommunityDb": lambda m: self.refresh_community(),
            "addUserSegment": lambda m: self.add_user_segment(m.get("movieId"), m.get("segment")),
            "removeUserSegment": lambda m: self.remove_user_segment(m.get("movieId"), m.get("userIndex")),
            "addHeuristicSegments": lambda m: self.add_heuristic_segments(m.get("movieId"), m.get("segments")),
            "updatePlaybackSnapshot": lambda m: self.update_playback(m.get("contextId"), m.get("payload")),
            "getPlaybackSnapshot": lambda m: self.playback_snapshot(m.get("contextId")),
            "exportLocalDb": lambda m: self.export_local_db(),
            "importLocalDb": lambda m: self.import_local_db(m.get("payload"), m.get("strategy")),
            "getLocalSegmentsForMovie": lambda m: self.local_segments(m.get("movieId")),
        }

    def handle(self, message: Any) -> OperationResult:
        """
        Dispatch a request like ``{"type": "addUserSegment", "movieId": ..., "segment": ...}``.

        Never raises: unknown requests and unexpected errors come back as
        failed results.
        """
        if not isinstance(message, Mapping):
            return OperationResult.failure("Unknown request.")

        handler = self._handlers().get(message.get("type"))
        if handler is None:
            return OperationResult.failure("Unknown request.")

        try:
            return handler(message)
        except Exception as e:
            _, friendly = handle_error(e, f"request {message.get('type')}")
            return OperationResult.failure(friendly)
