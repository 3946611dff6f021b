"""
Persistent segment storage.

The host store is a plain string-keyed blob store. ``SegmentStore`` keeps
two movie id -> segments maps in it (user annotations and detector output)
and implements every mutation as read-modify-write. Concurrent writers to
the same store get last-writer-wins semantics; one context performs its own
operations sequentially.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .error_handler import OperationResult, StorageError
from .segments import (
    AI_DEFAULTS,
    USER_DEFAULTS,
    MergePolicy,
    Segment,
    cap_recent,
    merge_into,
    normalize,
    parse_many,
    resolve_policy,
    sanitize_segment_map,
    serialize_segment_map,
    sort_segments,
)

logger = logging.getLogger(__name__)

USER_SEGMENTS_KEY = "userSegmentsByMovieId"
AI_SEGMENTS_KEY = "localAiSegmentsByMovieId"
SETTINGS_KEY = "settings"
LOCAL_DB_SCHEMA = "nsfw.localdb.v2"

# Detector output grows for as long as a movie plays
DEFAULT_AI_SEGMENT_LIMIT = 300


class KeyValueStore(ABC):
    """String-keyed blob store provided by the host environment."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under ``key``."""

    @abstractmethod
    def set(self, values: Mapping[str, Any]) -> None:
        """Store several keys at once."""


class MemoryStore(KeyValueStore):
    """In-process store, used for tests and ephemeral sessions."""

    def __init__(self, initial: Optional[Mapping[str, Any]] = None):
        self._data: Dict[str, Any] = {}
        if initial:
            self.set(initial)

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        # Hand out copies so callers cannot mutate stored state in place
        return json.loads(json.dumps(self._data[key]))

    def set(self, values: Mapping[str, Any]) -> None:
        for key, value in values.items():
            self._data[key] = json.loads(json.dumps(value))


class JsonFileStore(KeyValueStore):
    """
    Store backed by a single JSON file.

    The file is re-read on every access so separate processes sharing it
    see each other's writes; writes replace the file atomically.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(
                f"Could not read the segment store at {self.path}",
                str(e),
            ) from e
        if not isinstance(data, dict):
            logger.warning(f"Ignoring non-object store file {self.path}")
            return {}
        return data

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, values: Mapping[str, Any]) -> None:
        data = self._load()
        data.update(values)
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".store-", suffix=".json")
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            raise StorageError(
                f"Could not write the segment store at {self.path}",
                str(e),
            ) from e
        finally:
            # Only set when the replace did not happen
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)


def _parse_index(value: Any) -> Optional[int]:
    """Accept non-negative integers (or integral numbers/strings)."""
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not number.is_integer() or number < 0:
        return None
    return int(number)


class SegmentStore:
    """
    User and detector segments persisted per movie.

    Args:
        store: Host key-value store
        ai_segment_limit: Most recent detector segments kept per movie
    """

    def __init__(self, store: KeyValueStore, ai_segment_limit: int = DEFAULT_AI_SEGMENT_LIMIT):
        self.store = store
        self.ai_segment_limit = ai_segment_limit

    def ensure_defaults(self) -> None:
        """Create the empty segment maps on first run."""
        updates = {}
        if self.store.get(USER_SEGMENTS_KEY) is None:
            updates[USER_SEGMENTS_KEY] = {}
        if self.store.get(AI_SEGMENTS_KEY) is None:
            updates[AI_SEGMENTS_KEY] = {}
        if updates:
            self.store.set(updates)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def user_segment_map(self) -> Dict[str, List[Segment]]:
        return sanitize_segment_map(self.store.get(USER_SEGMENTS_KEY), USER_DEFAULTS)

    def ai_segment_map(self) -> Dict[str, List[Segment]]:
        return sanitize_segment_map(self.store.get(AI_SEGMENTS_KEY), AI_DEFAULTS)

    def user_segments(self, movie_id: str) -> List[Segment]:
        return self.user_segment_map().get(movie_id, [])

    def ai_segments(self, movie_id: str) -> List[Segment]:
        return self.ai_segment_map().get(movie_id, [])

    def local_segments_for_movie(self, movie_id: Optional[str]) -> OperationResult:
        """User segments followed by detector segments for one movie."""
        if not movie_id:
            return OperationResult.failure("No movie id.")
        return OperationResult.success(
            movieId=movie_id,
            segments=[*self.user_segments(movie_id), *self.ai_segments(movie_id)],
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _write(self, user_map: Optional[Mapping[str, Iterable[Segment]]] = None,
               ai_map: Optional[Mapping[str, Iterable[Segment]]] = None) -> None:
        updates = {}
        if user_map is not None:
            updates[USER_SEGMENTS_KEY] = serialize_segment_map(user_map)
        if ai_map is not None:
            updates[AI_SEGMENTS_KEY] = serialize_segment_map(ai_map)
        self.store.set(updates)

    def add_user_segment(self, movie_id: Optional[str], raw: Any) -> OperationResult:
        """Validate and store a manually entered segment."""
        if not movie_id:
            return OperationResult.failure("No movie selected.")

        segment = normalize(raw, USER_DEFAULTS)
        if segment is None:
            return OperationResult.failure("Invalid segment range or type.")

        user_map = self.user_segment_map()
        current = user_map.get(movie_id, [])
        if any(existing.same_as(segment) for existing in current):
            return OperationResult.failure("This segment already exists.")

        user_map[movie_id] = sort_segments([*current, segment])
        self._write(user_map=user_map)
        logger.info(f"Added user segment {segment!r} to {movie_id}")
        return OperationResult.success(segment=segment)

    def remove_user_segment(self, movie_id: Optional[str], index: Any) -> OperationResult:
        """Remove the user segment at ``index`` in the sorted per-movie list."""
        if not movie_id:
            return OperationResult.failure("No movie selected.")

        position = _parse_index(index)
        if position is None:
            return OperationResult.failure("Invalid segment index.")

        user_map = self.user_segment_map()
        current = user_map.get(movie_id, [])
        if position >= len(current):
            return OperationResult.failure("Segment index out of range.")

        removed = current.pop(position)
        user_map[movie_id] = current
        self._write(user_map=user_map)
        logger.info(f"Removed user segment {removed!r} from {movie_id}")
        return OperationResult.success(segment=removed)

    def add_heuristic_segments(self, movie_id: Optional[str], raws: Any) -> OperationResult:
        """
        Merge detector candidates into the movie's local_ai collection.

        Candidates that equal or overlap an existing same-type segment are
        skipped; the collection is then capped to the most recent entries.
        """
        if not movie_id:
            return OperationResult.failure("No movie selected.")

        incoming = parse_many(raws, AI_DEFAULTS)
        if not incoming:
            return OperationResult.success(added=0)

        ai_map = self.ai_segment_map()
        summary = merge_into(ai_map.get(movie_id, []), incoming, MergePolicy.PREFER_EXISTING)
        ai_map[movie_id] = cap_recent(summary.segments, self.ai_segment_limit)
        self._write(ai_map=ai_map)

        logger.debug(f"Heuristic segments for {movie_id}: {summary.counts()}")
        return OperationResult.success(added=summary.added)

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_payload(self) -> Dict[str, Any]:
        """Snapshot both local segment maps as a portable document."""
        return {
            "schema": LOCAL_DB_SCHEMA,
            "exportedAt": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            USER_SEGMENTS_KEY: serialize_segment_map(self.user_segment_map()),
            AI_SEGMENTS_KEY: serialize_segment_map(self.ai_segment_map()),
        }

    def import_payload(self, payload: Any, policy: Union[str, MergePolicy, None] = None) -> OperationResult:
        """
        Merge an exported document into the local maps.

        Unknown policy names fall back to prefer-existing. Invalid segments
        in the payload are dropped.

        Returns:
            OperationResult whose ``summary`` has strategy, movies, added,
            replaced and skipped
        """
        strategy = resolve_policy(policy if policy is not None else MergePolicy.PREFER_EXISTING)
        payload = payload if isinstance(payload, Mapping) else {}

        if payload.get("schema") not in (None, LOCAL_DB_SCHEMA):
            logger.warning(f"Importing payload with unexpected schema {payload.get('schema')!r}")

        imported_user = sanitize_segment_map(payload.get(USER_SEGMENTS_KEY), USER_DEFAULTS)
        imported_ai = sanitize_segment_map(payload.get(AI_SEGMENTS_KEY), AI_DEFAULTS)
        current_user = self.user_segment_map()
        current_ai = self.ai_segment_map()

        movie_ids = list(dict.fromkeys([
            *current_user, *imported_user, *current_ai, *imported_ai
        ]))

        added = replaced = skipped = 0
        for movie_id in movie_ids:
            user = merge_into(current_user.get(movie_id, []), imported_user.get(movie_id, []), strategy)
            ai = merge_into(current_ai.get(movie_id, []), imported_ai.get(movie_id, []), strategy)
            current_user[movie_id] = user.segments
            current_ai[movie_id] = ai.segments
            added += user.added + ai.added
            replaced += user.replaced + ai.replaced
            skipped += user.skipped + ai.skipped

        self._write(user_map=current_user, ai_map=current_ai)

        summary = {
            "strategy": strategy.value,
            "movies": len(movie_ids),
            "added": added,
            "replaced": replaced,
            "skipped": skipped,
        }
        logger.info(f"Imported local database: {summary}")
        return OperationResult.success(summary=summary)
