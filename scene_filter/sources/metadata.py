"""
Parental guide metadata lookup.

Counts sensitive keywords on a movie's IMDb Parents Guide page and tags
the movie as potentially sensitive when enough of them appear. This is a
coarse hint shown next to the segment list, not a segment source.
"""

import logging
import re
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

import requests

from .cache import TTLCache

logger = logging.getLogger(__name__)

PARENTS_GUIDE_URL = "https://www.imdb.com/title/{imdb_id}/parentalguide"
SOURCE_NAME = "imdb-parentalguide"
DEFAULT_TTL = 24 * 60 * 60

# A page with at least this many keyword hits is tagged as sensitive
SENSITIVE_KEYWORD_COUNT = 5

SENSITIVE_KEYWORDS = re.compile(
    r"nudity|sex|sexual|topless|breast|intercourse|erotic|genital"
)

HEADERS = {
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-store",
}


@dataclass(frozen=True)
class MetadataTag:
    """Coarse sensitivity hint for a movie."""
    potential_sensitive: bool
    source: str
    hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.hint is None:
            del data["hint"]
        return data


DISABLED_TAG = MetadataTag(potential_sensitive=False, source="disabled")


def count_sensitive_keywords(html: str) -> int:
    """Count keyword hits in a page, case-insensitively."""
    return len(SENSITIVE_KEYWORDS.findall(html.lower()))


class ParentalGuideClient:
    """
    Client for the IMDb Parents Guide keyword check.

    Args:
        timeout: Request timeout in seconds
        cache: Cache owned by this client (entries live 24 hours by default)
        session: Optional requests session
    """

    def __init__(
        self,
        timeout: int = 10,
        cache: Optional[TTLCache] = None,
        session: Optional[requests.Session] = None
    ):
        self.timeout = timeout
        self.cache = cache if cache is not None else TTLCache(DEFAULT_TTL)
        self.session = session or requests.Session()
        self.session.headers.update(HEADERS)

    def _fetch_tag(self, movie_id: str) -> MetadataTag:
        url = PARENTS_GUIDE_URL.format(imdb_id=movie_id)
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"Parents guide lookup failed for {movie_id}: {e}")
            return MetadataTag(False, SOURCE_NAME, "fetch_failed")

        if not response.ok:
            logger.info(f"Parents guide unavailable for {movie_id} ({response.status_code})")
            return MetadataTag(False, SOURCE_NAME, "unavailable")

        count = count_sensitive_keywords(response.text)
        sensitive = count >= SENSITIVE_KEYWORD_COUNT
        logger.debug(f"Parents guide for {movie_id}: {count} keyword hits")
        return MetadataTag(
            potential_sensitive=sensitive,
            source=SOURCE_NAME,
            hint="keywords_detected" if sensitive else "low_keyword_count",
        )

    def lookup(self, movie_id: Optional[str], enabled: bool = True) -> MetadataTag:
        """
        Get the sensitivity tag for a movie.

        Disabled lookups and missing movie ids return DISABLED_TAG without
        touching the network.
        """
        if not movie_id or not enabled:
            return DISABLED_TAG
        return self.cache.get_or_load(movie_id, lambda: self._fetch_tag(movie_id))
