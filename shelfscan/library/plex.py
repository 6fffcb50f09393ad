"""
Personal library client (Plex Media Server).

Lists movie and show libraries, fetches their items with embedded
external ids, and cross-references enriched scan items against them.
"""

import re
from dataclasses import dataclass, field
from typing import Optional

import httpx
from loguru import logger

from shelfscan.identification.normalizer import normalize_library_title
from shelfscan.identification.types import EnrichedItem


LIBRARY_KINDS = ("movie", "show")

_LEGACY_GUID_SCHEMES = (
    ("imdb", re.compile(r"imdb://([^?]+)")),
    ("tmdb", re.compile(r"themoviedb://([^?]+)")),
    ("tvdb", re.compile(r"thetvdb://([^?]+)")),
)

_MODERN_GUID_PREFIXES = (
    ("imdb", "imdb://"),
    ("tmdb", "tmdb://"),
    ("tvdb", "tvdb://"),
)

_LEADING_DIGITS = re.compile(r"\s*(\d+)")


class LibraryError(Exception):
    """Library server request failed."""


@dataclass
class LibraryGuids:
    imdb_id: Optional[str] = None
    tmdb_id: Optional[str] = None
    tvdb_id: Optional[str] = None


@dataclass
class LibrarySection:
    key: str
    title: str
    kind: str


@dataclass
class LibraryItem:
    rating_key: str
    title: str
    year: Optional[int] = None
    kind: str = "movie"
    guids: LibraryGuids = field(default_factory=LibraryGuids)


@dataclass
class LibraryMatch:
    rating_key: str
    imdb_id: Optional[str] = None
    tmdb_id: Optional[str] = None
    tvdb_id: Optional[str] = None


def parse_guids(metadata: dict) -> LibraryGuids:
    """
    Extract external ids from a library item.

    Modern servers send a `Guid` list of prefixed ids ("imdb://tt0103639");
    older agents put a single `guid` string such as
    "com.plexapp.agents.imdb://tt0103639?lang=en".
    """
    guids = LibraryGuids()

    for entry in metadata.get("Guid") or []:
        value = entry.get("id") if isinstance(entry, dict) else None
        if not isinstance(value, str):
            continue
        for name, prefix in _MODERN_GUID_PREFIXES:
            if value.startswith(prefix):
                setattr(guids, f"{name}_id", value[len(prefix):])

    if guids.imdb_id or guids.tmdb_id:
        return guids

    legacy = metadata.get("guid")
    if isinstance(legacy, str):
        for name, pattern in _LEGACY_GUID_SCHEMES:
            match = pattern.search(legacy)
            if match:
                setattr(guids, f"{name}_id", match.group(1))
                break

    return guids


def find_library_match(
    title: str,
    year: Optional[int],
    items: list[LibraryItem],
) -> Optional[LibraryMatch]:
    """
    First library item whose folded title equals or contains the query
    (or is contained by it), rejecting year gaps larger than one.
    """
    query = normalize_library_title(title)
    if not query:
        return None

    for item in items:
        candidate = normalize_library_title(item.title)
        if not candidate:
            continue
        if not (query == candidate or query in candidate or candidate in query):
            continue
        if year and item.year and abs(year - item.year) > 1:
            logger.debug(
                f"Library match '{item.title}' rejected for '{title}': "
                f"year {item.year} vs {year}"
            )
            continue

        logger.info(f"Library match for '{title}': '{item.title}' ({item.rating_key})")
        return LibraryMatch(
            rating_key=item.rating_key,
            imdb_id=item.guids.imdb_id,
            tmdb_id=item.guids.tmdb_id,
            tvdb_id=item.guids.tvdb_id,
        )
    return None


def merge_library_match(item: EnrichedItem, match: LibraryMatch) -> EnrichedItem:
    """Flag the library hit and fill identifiers that are still empty."""
    item.library_matched = True
    item.library_ref = match.rating_key
    if item.imdb_id is None and match.imdb_id:
        item.imdb_id = match.imdb_id
    if item.tvdb_id is None and match.tvdb_id:
        # Legacy guids carry "series/season/episode"; the leading digits are the series id
        digits = _LEADING_DIGITS.match(match.tvdb_id)
        if digits:
            item.tvdb_id = int(digits.group(1)) or None
        else:
            logger.debug(f"Ignoring non-numeric library tvdb id {match.tvdb_id!r}")
    return item


def cross_reference(items: list[EnrichedItem], library: list[LibraryItem]) -> list[EnrichedItem]:
    for item in items:
        match = find_library_match(item.title, item.year, library)
        if match:
            merge_library_match(item, match)
    return items


class PlexClient:
    """
    Async client for a Plex Media Server.

    Unlike the catalog clients, failures raise LibraryError so callers
    can decide to skip cross-referencing.
    """

    CLIENT_IDENTIFIER = "shelfscan"
    PRODUCT = "ShelfScan"

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={
                    "Accept": "application/json",
                    "X-Plex-Token": self.token,
                    "X-Plex-Client-Identifier": self.CLIENT_IDENTIFIER,
                    "X-Plex-Product": self.PRODUCT,
                },
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _container(self, path: str, params: Optional[dict] = None) -> dict:
        client = await self._get_client()
        try:
            response = await client.get(path, params=params)
        except httpx.HTTPError as e:
            raise LibraryError(f"Plex request {path} failed: {e}") from e
        if response.status_code != 200:
            raise LibraryError(f"Plex API error: {response.status_code}")
        try:
            return response.json().get("MediaContainer") or {}
        except ValueError as e:
            raise LibraryError(f"Plex returned invalid JSON for {path}") from e

    async def list_sections(self) -> list[LibrarySection]:
        container = await self._container("/library/sections")
        sections = [
            LibrarySection(key=str(d.get("key")), title=str(d.get("title")), kind=d.get("type"))
            for d in container.get("Directory") or []
            if d.get("type") in LIBRARY_KINDS
        ]
        logger.info(f"Plex libraries: {', '.join(s.title for s in sections) or 'none'}")
        return sections

    async def list_items(self, section_key: str, kind: str = "movie") -> list[LibraryItem]:
        container = await self._container(
            f"/library/sections/{section_key}/all",
            {"includeGuids": 1},
        )
        items = []
        for metadata in container.get("Metadata") or []:
            year = metadata.get("year")
            items.append(
                LibraryItem(
                    rating_key=str(metadata.get("ratingKey")),
                    title=str(metadata.get("title") or ""),
                    year=year if isinstance(year, int) else None,
                    kind=kind,
                    guids=parse_guids(metadata),
                )
            )
        logger.debug(f"Plex section {section_key}: {len(items)} items")
        return items

    async def list_all_items(self) -> list[LibraryItem]:
        """Items from every movie and show library, in library order."""
        all_items: list[LibraryItem] = []
        for section in await self.list_sections():
            all_items.extend(await self.list_items(section.key, section.kind))
        logger.info(f"Fetched {len(all_items)} Plex items")
        return all_items
