"""
Bundled segment database.

Loads the ``segments.json`` file shipped with the application. The parsed
database is kept for a few minutes so repeated lookups do not re-read it.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Optional, Union

from ..error_handler import SourceUnavailableError
from .cache import TTLCache
from .records import MovieRecord, normalize_records

logger = logging.getLogger(__name__)

BUNDLED_SOURCE_NAME = "local-bundled"
DEFAULT_TTL = 5 * 60


class BundledDatabase:
    """Read-only segment database backed by a local JSON file."""

    name = BUNDLED_SOURCE_NAME

    def __init__(
        self,
        path: Union[str, Path, None],
        cache: Optional[TTLCache] = None
    ):
        self.path = Path(path) if path else None
        self.cache = cache if cache is not None else TTLCache(DEFAULT_TTL)

    def _read(self) -> Dict[str, MovieRecord]:
        if self.path is None:
            logger.debug("No bundled database configured")
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise SourceUnavailableError(
                f"Bundled segment database could not be read: {self.path}",
                str(e),
            ) from e

        records = normalize_records(data)
        logger.info(f"Loaded {len(records)} movies from bundled database {self.path.name}")
        return records

    def load(self) -> Dict[str, MovieRecord]:
        """Return the parsed database, from cache when fresh."""
        return self.cache.get_or_load(self.name, self._read)

    def get(self, movie_id: str) -> Optional[MovieRecord]:
        return self.load().get(movie_id)
