"""
Media Identification Module

Matches vision-model title guesses against the TMDB and TVDB catalogs.
"""

from shelfscan.identification.types import (
    ItemKind,
    Confidence,
    MetadataSource,
    ScanStatus,
    IdentifiedItem,
    CandidateRecord,
    CatalogDetail,
    EnrichedItem,
)
from shelfscan.identification.normalizer import (
    strip_article,
    strip_series_suffix,
    extract_series_name,
    normalize_library_title,
)
from shelfscan.identification.similarity import (
    MatchPolicy,
    DEFAULT_POLICY,
    edit_distance,
    similarity,
    title_score,
)
from shelfscan.identification.matcher import (
    BestMatch,
    BestMatchSelector,
)
from shelfscan.identification.tmdb import (
    TMDBClient,
    GenreCache,
)
from shelfscan.identification.tvdb import (
    TVDBClient,
    TokenCache,
    TVDBAuthError,
    extract_tvdb_id,
)
from shelfscan.identification.resolver import MultiSourceResolver

__all__ = [
    # Types
    "ItemKind",
    "Confidence",
    "MetadataSource",
    "ScanStatus",
    "IdentifiedItem",
    "CandidateRecord",
    "CatalogDetail",
    "EnrichedItem",
    # Normalization and scoring
    "strip_article",
    "strip_series_suffix",
    "extract_series_name",
    "normalize_library_title",
    "MatchPolicy",
    "DEFAULT_POLICY",
    "edit_distance",
    "similarity",
    "title_score",
    "BestMatch",
    "BestMatchSelector",
    # Catalogs
    "TMDBClient",
    "GenreCache",
    "TVDBClient",
    "TokenCache",
    "TVDBAuthError",
    "extract_tvdb_id",
    "MultiSourceResolver",
]
