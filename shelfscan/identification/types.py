"""
Identification data model.

Raw items emitted by the vision step, candidate records returned by the
catalog adapters, and the enriched records the resolver hands back to the
scan pipeline.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional


class ItemKind(str, Enum):
    """Coarse media category of a shelf item."""

    MOVIE = "movie"
    TV = "tv"
    # Physical video disc, movie or TV not yet determined
    DISC = "dvd"
    VINYL = "vinyl"
    GAME = "game"
    OTHER = "other"


class Confidence(str, Enum):
    HIGH = "high"
    LOW = "low"
    UNMATCHED = "unmatched"


class MetadataSource(str, Enum):
    PRIMARY_CATALOG = "tmdb"
    PERSONAL_LIBRARY = "plex"
    NONE = "none"


class ScanStatus(str, Enum):
    PENDING = "pending"
    ANALYZING = "analyzing"
    ENRICHING = "enriching"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class IdentifiedItem:
    """One item as guessed by the vision model."""

    title: str
    creator: str = ""
    kind: ItemKind = ItemKind.OTHER
    year: Optional[int] = None

    @property
    def known_year(self) -> Optional[int]:
        """Year usable as a filter; the model reports 0 when unsure."""
        if self.year and self.year > 0:
            return self.year
        return None


@dataclass
class CandidateRecord:
    """Single catalog search result being scored against a query."""

    external_id: int
    display_name: str
    kind: str
    year: Optional[int] = None
    poster_ref: Optional[str] = None
    overview: Optional[str] = None
    rating_avg: Optional[float] = None
    release_date: Optional[str] = None
    genre_ids: list[int] = field(default_factory=list)


@dataclass
class CatalogDetail:
    """Detail fields unavailable from a search response."""

    external_id: int
    imdb_id: Optional[str] = None
    director: Optional[str] = None
    runtime: Optional[int] = None
    network: Optional[str] = None
    season_count: Optional[int] = None
    status: Optional[str] = None
    creators: Optional[str] = None


@dataclass
class EnrichedItem:
    """
    Resolved item, ready to persist.

    An unmatched item carries no catalog fields and its source is NONE.
    """

    title: str
    creator: str
    kind: ItemKind
    confidence: Confidence = Confidence.UNMATCHED
    source: MetadataSource = MetadataSource.NONE

    # Identifiers
    tmdb_id: Optional[int] = None
    imdb_id: Optional[str] = None
    tvdb_id: Optional[int] = None

    # Catalog fields
    poster_url: Optional[str] = None
    overview: Optional[str] = None
    rating: Optional[float] = None
    release_date: Optional[str] = None
    genres: Optional[str] = None
    year: Optional[int] = None
    director: Optional[str] = None
    runtime: Optional[int] = None
    network: Optional[str] = None
    seasons: Optional[int] = None
    show_status: Optional[str] = None

    # Personal library
    library_matched: bool = False
    library_ref: Optional[str] = None

    @property
    def is_matched(self) -> bool:
        return self.confidence != Confidence.UNMATCHED

    @classmethod
    def unmatched(cls, item: IdentifiedItem) -> "EnrichedItem":
        """Build the terminal no-match record for an identified item."""
        return cls(
            title=item.title,
            creator=item.creator,
            kind=item.kind,
            year=item.known_year,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        data["confidence"] = self.confidence.value
        data["source"] = self.source.value
        return data
