"""
Primary catalog client (The Movie Database).

Movie and TV search, detail lookups, find-by-IMDb-id and the genre list.
Every public call fails soft: transport errors, non-200 responses and
malformed bodies are logged and turned into an empty list or None.
"""

import asyncio
from typing import Optional

import httpx
from loguru import logger

from shelfscan.identification.types import CandidateRecord, CatalogDetail


TMDB_BASE_URL = "https://api.themoviedb.org/3"
TMDB_IMAGE_BASE = "https://image.tmdb.org/t/p/w500"

OVERVIEW_MAX_CHARS = 500


def parse_year(date: Optional[str]) -> Optional[int]:
    """Year from a "YYYY-MM-DD" catalog date."""
    if not date or len(date) < 4:
        return None
    try:
        year = int(date[:4])
    except ValueError:
        return None
    return year or None


def poster_url(poster_path: Optional[str]) -> Optional[str]:
    if not poster_path:
        return None
    return f"{TMDB_IMAGE_BASE}{poster_path}"


class GenreCache:
    """
    Genre id to display name map, loaded once per process.

    Concurrent first loads may both fetch; the values are stable so the
    later write simply overwrites identical entries.
    """

    def __init__(self):
        self._genres: dict[int, str] = {}
        self.loaded = False

    def __len__(self) -> int:
        return len(self._genres)

    def update(self, genres: dict[int, str]) -> None:
        self._genres.update(genres)

    async def ensure_loaded(self, client: "TMDBClient") -> None:
        if self.loaded:
            return
        movie_genres, tv_genres = await asyncio.gather(
            client.fetch_genres("movie"),
            client.fetch_genres("tv"),
        )
        if movie_genres is None and tv_genres is None:
            logger.warning("Genre cache load failed, proceeding without genres")
            return
        self.update(movie_genres or {})
        self.update(tv_genres or {})
        self.loaded = True
        logger.debug(f"Genre cache loaded with {len(self._genres)} genres")

    def resolve(self, genre_ids: list[int]) -> Optional[str]:
        """Comma-joined genre names; unknown ids are skipped."""
        names = [self._genres[g] for g in genre_ids or [] if g in self._genres]
        return ", ".join(names) if names else None


class TMDBClient:
    """
    Async client for the TMDB v3 API.

    Authenticates with a static bearer token.

    Usage:
        client = TMDBClient(api_key="...")
        results = await client.search("Alien", 1979, kind="movie")
        detail = await client.fetch_detail(results[0].external_id, kind="movie")
    """

    def __init__(
        self,
        api_key: str,
        timeout: float = 20.0,
        base_url: str = TMDB_BASE_URL,
        window: int = 5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.base_url = base_url
        self.window = window
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Authorization": f"Bearer {self.api_key}"},
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get_json(self, path: str, params: Optional[dict] = None) -> Optional[dict]:
        client = await self._get_client()
        query = {"language": "en-US"}
        query.update(params or {})
        try:
            response = await client.get(path, params=query)
            if response.status_code != 200:
                logger.warning(f"TMDB request {path} failed with status {response.status_code}")
                return None
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"TMDB request {path} failed: {e}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"TMDB request {path} returned {type(data).__name__}, expected an object")
            return None
        return data

    async def search(
        self,
        title: str,
        year: Optional[int] = None,
        kind: str = "movie",
    ) -> list[CandidateRecord]:
        """
        Search movies or TV series by title.

        Args:
            title: Query title
            year: Release year (movies) or first-air year (TV)
            kind: "movie" or "tv"

        Returns:
            Up to `window` candidates in catalog order
        """
        params = {"query": title, "page": 1}
        if year and year > 0:
            params["year" if kind == "movie" else "first_air_date_year"] = year

        logger.debug(f"Searching TMDB {kind}: '{title}' (year={year})")
        data = await self._get_json(f"/search/{kind}", params)
        if not data:
            return []

        results = data.get("results")
        if not isinstance(results, list):
            results = []
        candidates = [
            c for c in (self._parse_result(r, kind) for r in results[: self.window])
            if c is not None
        ]
        logger.debug(
            f"TMDB {kind} search '{title}' returned {data.get('total_results', 0)} results: "
            + ", ".join(f"{c.display_name} ({c.year or '?'})" for c in candidates)
        )
        return candidates

    def _parse_result(self, result: dict, kind: str) -> Optional[CandidateRecord]:
        if not isinstance(result, dict):
            return None
        try:
            external_id = int(result["id"])
        except (KeyError, TypeError, ValueError):
            return None

        if kind == "movie":
            name = result.get("title") or result.get("original_title") or ""
            date = result.get("release_date")
        else:
            name = result.get("name") or result.get("original_name") or ""
            date = result.get("first_air_date")

        overview = result.get("overview")
        return CandidateRecord(
            external_id=external_id,
            display_name=name,
            kind=kind,
            year=parse_year(date),
            poster_ref=result.get("poster_path"),
            overview=overview[:OVERVIEW_MAX_CHARS] if overview else None,
            rating_avg=result.get("vote_average"),
            release_date=date or None,
            genre_ids=list(result.get("genre_ids") or []),
        )

    async def fetch_detail(self, tmdb_id: int, kind: str = "movie") -> Optional[CatalogDetail]:
        """
        Fetch the extended record for a matched candidate.

        Movies append credits (director, runtime, IMDb id); series append
        external ids (IMDb id) alongside network, seasons, status and creators.
        """
        append = "credits" if kind == "movie" else "external_ids"
        data = await self._get_json(f"/{kind}/{tmdb_id}", {"append_to_response": append})
        if not data:
            return None

        if kind == "movie":
            credits = data.get("credits")
            crew = credits.get("crew") if isinstance(credits, dict) else None
            director = next(
                (c.get("name") for c in crew or [] if isinstance(c, dict) and c.get("job") == "Director"),
                None,
            )
            return CatalogDetail(
                external_id=tmdb_id,
                imdb_id=data.get("imdb_id") or None,
                director=director,
                runtime=data.get("runtime"),
            )

        networks = [n for n in data.get("networks") or [] if isinstance(n, dict)]
        created_by = [c for c in data.get("created_by") or [] if isinstance(c, dict)]
        external_ids = data.get("external_ids")
        return CatalogDetail(
            external_id=tmdb_id,
            imdb_id=(external_ids.get("imdb_id") if isinstance(external_ids, dict) else None) or None,
            network=networks[0].get("name") if networks else None,
            season_count=data.get("number_of_seasons"),
            status=data.get("status"),
            creators=", ".join(c.get("name", "") for c in created_by) or None,
        )

    async def find_by_imdb_id(self, imdb_id: str) -> Optional[tuple[int, str]]:
        """
        Resolve an IMDb id directly.

        Returns:
            (tmdb_id, "movie" | "tv"), or None
        """
        data = await self._get_json(f"/find/{imdb_id}", {"external_source": "imdb_id"})
        if not data:
            return None

        for key, kind in (("movie_results", "movie"), ("tv_results", "tv")):
            results = data.get(key)
            if not isinstance(results, list) or not results:
                continue
            try:
                tmdb_id = int(results[0]["id"])
            except (KeyError, TypeError, ValueError):
                logger.warning(f"TMDB find returned a {kind} result without a usable id for {imdb_id}")
                continue
            logger.debug(f"TMDB found {kind} {tmdb_id} for {imdb_id}")
            return tmdb_id, kind

        logger.debug(f"TMDB find returned nothing for {imdb_id}")
        return None

    async def fetch_genres(self, kind: str) -> Optional[dict[int, str]]:
        data = await self._get_json(f"/genre/{kind}/list")
        if data is None:
            return None
        genres = data.get("genres")
        if not isinstance(genres, list):
            genres = []
        return {
            g["id"]: g["name"]
            for g in genres
            if isinstance(g, dict) and "id" in g and "name" in g
        }
