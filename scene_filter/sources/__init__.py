"""
Segment sources: bundled file, community mirrors and metadata lookup.
"""

from .cache import TTLCache
from .records import MovieRecord, normalize_records
from .bundled import BundledDatabase, BUNDLED_SOURCE_NAME
from .community import CommunityDatabase, DEFAULT_MIRRORS
from .metadata import MetadataTag, ParentalGuideClient, DISABLED_TAG

__all__ = [
    'TTLCache',
    'MovieRecord',
    'normalize_records',
    'BundledDatabase',
    'BUNDLED_SOURCE_NAME',
    'CommunityDatabase',
    'DEFAULT_MIRRORS',
    'MetadataTag',
    'ParentalGuideClient',
    'DISABLED_TAG',
]
