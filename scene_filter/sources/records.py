"""
Raw movie records shared by the bundled and community databases.

Both databases are JSON arrays of ``{"id": "tt...", "segments": [...]}``.
Segments stay raw here; they are validated when a movie is looked up.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


@dataclass
class MovieRecord:
    """One movie entry in a segment database."""
    id: str
    segments: List[Any] = field(default_factory=list)


def normalize_records(parsed: Any) -> Dict[str, MovieRecord]:
    """
    Index a parsed database by movie id.

    Entries without a string id are dropped; a non-list ``segments`` value
    is treated as empty. A later entry for the same id replaces an earlier one.
    """
    records = parsed if isinstance(parsed, list) else []
    indexed: Dict[str, MovieRecord] = {}

    for entry in records:
        if not isinstance(entry, dict) or not isinstance(entry.get("id"), str):
            continue
        segments = entry.get("segments")
        indexed[entry["id"]] = MovieRecord(
            id=entry["id"],
            segments=segments if isinstance(segments, list) else [],
        )

    dropped = len(records) - len(indexed)
    if dropped > 0:
        logger.debug(f"Dropped {dropped} malformed or duplicate database entries")
    return indexed
