"""
Supplemental catalog client (TheTVDB v4).

Used only to attach a TVDB id to items already matched against the
primary catalog. Authentication exchanges a static API key for a bearer
token that is cached and refreshed a few days before it expires.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx
from loguru import logger

from shelfscan.identification.matcher import BestMatchSelector
from shelfscan.identification.normalizer import extract_series_name


TVDB_BASE_URL = "https://api4.thetvdb.com/v4"

# Tokens are valid for a month; refresh after 27 days
TOKEN_LIFETIME_SECONDS = 27 * 24 * 60 * 60

# Fields that may carry the numeric id, highest priority first
ID_FIELDS = ("tvdb_id", "id", "objectID")


class TVDBAuthError(Exception):
    """Login to the supplemental catalog failed."""


def _positive_int(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = int(str(value).strip())
    except ValueError:
        return None
    return parsed if parsed > 0 else None


def extract_tvdb_id(result: dict) -> Optional[int]:
    """
    Extract the numeric id from a search result.

    `tvdb_id` is a plain number; `id` and `objectID` may be composite
    ("series-12345"), in which case the part after the last dash is used.
    """
    for key in ID_FIELDS:
        value = result.get(key)
        if value is None or value == "":
            continue
        if key == "tvdb_id":
            parsed = _positive_int(value)
        else:
            parsed = _positive_int(str(value).rsplit("-", 1)[-1])
        if parsed is not None:
            return parsed
    return None


def _result_year(result: dict) -> Optional[int]:
    return _positive_int(result.get("year"))


@dataclass
class TokenCache:
    """Process-wide bearer token with its expiry (epoch seconds)."""

    token: Optional[str] = None
    expires_at: float = 0.0

    def valid(self, now: Optional[float] = None) -> Optional[str]:
        now = time.time() if now is None else now
        if self.token and now < self.expires_at:
            return self.token
        return None

    def store(self, token: str, now: Optional[float] = None) -> None:
        now = time.time() if now is None else now
        self.token = token
        self.expires_at = now + TOKEN_LIFETIME_SECONDS


class TVDBClient:
    """
    Async client for the TVDB v4 API.

    Usage:
        client = TVDBClient(api_key="...", token_cache=TokenCache())
        tvdb_id = await client.resolve_id("Breaking Bad", 2008, "tt0903747", "tv")
    """

    def __init__(
        self,
        api_key: str,
        token_cache: Optional[TokenCache] = None,
        selector: Optional[BestMatchSelector] = None,
        timeout: float = 20.0,
        base_url: str = TVDB_BASE_URL,
        window: int = 5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.api_key = api_key
        self.token_cache = token_cache or TokenCache()
        self.selector = selector or BestMatchSelector()
        self.timeout = timeout
        self.base_url = base_url
        self.window = window
        self.clock = clock
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_token(self) -> str:
        """Return a valid bearer token, logging in when needed."""
        now = self.clock()
        token = self.token_cache.valid(now)
        if token:
            return token

        logger.info("Requesting new TVDB auth token")
        client = await self._get_client()
        try:
            response = await client.post("/login", json={"apikey": self.api_key})
        except httpx.HTTPError as e:
            raise TVDBAuthError(f"TVDB login failed: {e}") from e

        if response.status_code != 200:
            raise TVDBAuthError(f"TVDB login failed: {response.status_code}")

        try:
            token = (response.json().get("data") or {}).get("token")
        except ValueError:
            token = None
        if not token:
            raise TVDBAuthError("TVDB login returned no token")

        self.token_cache.store(token, now)
        return token

    async def _get(self, path: str, params: Optional[dict] = None) -> Optional[list]:
        """GET returning the `data` list, or None on any failure."""
        try:
            token = await self.get_token()
            client = await self._get_client()
            response = await client.get(
                path,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
            if response.status_code != 200:
                logger.warning(f"TVDB request {path} failed with status {response.status_code}")
                return None
            return response.json().get("data") or []
        except (TVDBAuthError, httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning(f"TVDB request {path} failed: {e}")
            return None

    async def search(
        self,
        title: str,
        year: Optional[int] = None,
        kind: str = "series",
    ) -> list[dict]:
        """Search by title; kind is "series" or "movie"."""
        params = {"query": title, "type": kind, "limit": self.window}
        if year:
            params["year"] = year
        results = await self._get("/search", params)
        return (results or [])[: self.window]

    async def search_id(self, title: str, year: Optional[int], kind: str) -> Optional[int]:
        """Title search followed by best-match selection."""
        results = await self.search(title, year, kind)
        if not results:
            logger.debug(f"No TVDB {kind} results for '{title}'")
            return None

        match = self.selector.select(
            title,
            year,
            results,
            name=lambda r: r.get("name") or "",
            candidate_year=_result_year,
        )
        if match is None:
            return None

        tvdb_id = extract_tvdb_id(match.candidate)
        logger.debug(f"TVDB {kind} match for '{title}': {match.candidate.get('name')} -> {tvdb_id}")
        return tvdb_id

    async def find_by_imdb_id(self, imdb_id: str) -> Optional[tuple[int, str]]:
        """
        Resolve an IMDb id to a TVDB id.

        Tries the query-parameter search first, preferring series or movie
        records, then the path-based remote id lookup whose records nest
        the series/movie object.

        Returns:
            (tvdb_id, "series" | "movie"), or None
        """
        results = await self._get("/search", {"remote_id": imdb_id, "limit": self.window})
        if results:
            for result in results:
                result_type = (result.get("type") or result.get("primary_type") or "").lower()
                tvdb_id = extract_tvdb_id(result)
                if tvdb_id and result_type in ("series", "movie"):
                    return tvdb_id, result_type

            first = results[0]
            tvdb_id = extract_tvdb_id(first)
            if tvdb_id:
                result_type = (first.get("type") or first.get("primary_type") or "").lower()
                return tvdb_id, "movie" if result_type == "movie" else "series"

        records = await self._get(f"/search/remoteid/{imdb_id}")
        for record in records or []:
            for kind in ("series", "movie"):
                nested = record.get(kind)
                if isinstance(nested, dict):
                    tvdb_id = _positive_int(nested.get("id"))
                    if tvdb_id:
                        return tvdb_id, kind

        logger.debug(f"No TVDB record for {imdb_id}")
        return None

    async def resolve_id(
        self,
        title: str,
        year: Optional[int],
        imdb_id: Optional[str],
        kind: str,
    ) -> Optional[int]:
        """
        Resolve a TVDB id for an item matched in the primary catalog.

        A direct IMDb id lookup wins whenever it yields a result; title
        search runs only when there is no id or the lookup found nothing.
        """
        if imdb_id:
            found = await self.find_by_imdb_id(imdb_id)
            if found:
                logger.info(f"TVDB id for '{title}' resolved via {imdb_id}: {found[0]}")
                return found[0]

        if kind == "tv":
            search_title = extract_series_name(title)
            tvdb_id = await self.search_id(search_title, year, "series")
            if tvdb_id is None and search_title != title:
                tvdb_id = await self.search_id(title, year, "series")
            return tvdb_id

        if kind == "movie":
            return await self.search_id(title, year, "movie")

        tvdb_id = await self.search_id(title, year, "movie")
        if tvdb_id is None:
            tvdb_id = await self.search_id(title, year, "series")
        return tvdb_id

    async def test_connection(self) -> tuple[bool, str]:
        try:
            await self.get_token()
        except TVDBAuthError as e:
            return False, str(e)
        return True, "Successfully authenticated with TVDB"
