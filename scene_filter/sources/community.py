"""
Community segment database client.

Fetches the crowd-sourced segment database from a list of mirrors, trying
them in order until one returns a usable database. Results are cached for
a few minutes; ``refresh`` drops the cache so the next lookup refetches.
"""

import logging
from typing import Dict, List, Optional

import requests

from .cache import TTLCache
from .records import MovieRecord, normalize_records

logger = logging.getLogger(__name__)

DEFAULT_TTL = 5 * 60
CACHE_KEY = "community"

DEFAULT_MIRRORS = [
    {
        "name": "community-raw",
        "url": "https://raw.githubusercontent.com/SceneFilterCommunity/scenefilter-db/main/segments.json",
    },
    {
        "name": "community-jsdelivr",
        "url": "https://cdn.jsdelivr.net/gh/SceneFilterCommunity/scenefilter-db@main/segments.json",
    },
]


class CommunityDatabase:
    """
    Client for the community segment database.

    Args:
        mirrors: List of {"name", "url"} dictionaries, tried in order
        timeout: Request timeout in seconds
        cache: Cache owned by this client
        session: Optional requests session (a new one is created otherwise)
    """

    def __init__(
        self,
        mirrors: Optional[List[Dict[str, str]]] = None,
        timeout: int = 10,
        cache: Optional[TTLCache] = None,
        session: Optional[requests.Session] = None
    ):
        self.mirrors = mirrors if mirrors is not None else list(DEFAULT_MIRRORS)
        self.timeout = timeout
        self.cache = cache if cache is not None else TTLCache(DEFAULT_TTL)
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        self.active_source: Optional[str] = None

    def _fetch(self, url: str) -> Optional[dict]:
        """Fetch one mirror, returning the parsed JSON or None on failure."""
        try:
            response = self.session.get(url, timeout=self.timeout, headers={"Cache-Control": "no-store"})
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            logger.warning(f"Community mirror unavailable: {url} ({e})")
            return None
        except ValueError as e:
            logger.warning(f"Community mirror returned invalid JSON: {url} ({e})")
            return None

    def _load_from_mirrors(self) -> Optional[Dict[str, MovieRecord]]:
        for mirror in self.mirrors:
            name = mirror.get("name", mirror.get("url", "community"))
            data = self._fetch(mirror["url"])
            if data is None:
                continue
            records = normalize_records(data)
            if records:
                self.active_source = name
                logger.info(f"Loaded {len(records)} movies from {name}")
                return records
            logger.warning(f"Community mirror {name} returned no usable records")

        logger.warning("No community mirror available")
        return None

    def load(self) -> Optional[Dict[str, MovieRecord]]:
        """Return the community database, or None when every mirror failed."""
        return self.cache.get_or_load(CACHE_KEY, self._load_from_mirrors)

    def get(self, movie_id: str) -> Optional[MovieRecord]:
        records = self.load()
        if not records:
            return None
        return records.get(movie_id)

    def refresh(self) -> None:
        """Forget the cached database so the next lookup refetches it."""
        self.cache.invalidate(CACHE_KEY)
        logger.info("Community database cache cleared")
