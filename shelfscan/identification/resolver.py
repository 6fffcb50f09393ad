"""
Multi-Source Resolver

Turns one identified shelf item into an enriched record:

1. Primary catalog match, dispatched by kind (discs try movie, then TV)
2. Confidence tier from the best score
3. Supplemental catalog id, preferring a direct IMDb id lookup
4. (Scan pipeline) personal-library cross-reference

Each item is resolved independently; `resolve_all` runs them concurrently
and degrades any item whose resolution raises to unmatched.
"""

import asyncio
from typing import Optional

from loguru import logger

from shelfscan.identification.matcher import BestMatch, BestMatchSelector
from shelfscan.identification.normalizer import extract_series_name
from shelfscan.identification.similarity import MatchPolicy
from shelfscan.identification.tmdb import GenreCache, TMDBClient, poster_url
from shelfscan.identification.tvdb import TVDBClient
from shelfscan.identification.types import (
    CandidateRecord,
    EnrichedItem,
    IdentifiedItem,
    ItemKind,
    MetadataSource,
)


class MultiSourceResolver:
    """
    Resolves identified items against the primary and supplemental catalogs.

    Usage:
        resolver = MultiSourceResolver(tmdb=TMDBClient(api_key), tvdb=TVDBClient(key))
        enriched = await resolver.resolve_all(items)
    """

    def __init__(
        self,
        tmdb: TMDBClient,
        tvdb: Optional[TVDBClient] = None,
        genre_cache: Optional[GenreCache] = None,
        policy: Optional[MatchPolicy] = None,
    ):
        self.tmdb = tmdb
        self.tvdb = tvdb
        self.genre_cache = genre_cache or GenreCache()
        self.selector = BestMatchSelector(policy)

    async def resolve_all(self, items: list[IdentifiedItem]) -> list[EnrichedItem]:
        """
        Resolve every item concurrently.

        The result is index-aligned with `items`; a failing item becomes
        unmatched without affecting its siblings.
        """
        logger.info(f"Resolving {len(items)} items")
        await self.genre_cache.ensure_loaded(self.tmdb)

        results = await asyncio.gather(
            *(self.resolve(item) for item in items),
            return_exceptions=True,
        )

        enriched: list[EnrichedItem] = []
        for item, result in zip(items, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(f"Resolution failed for '{item.title}': {result}")
                enriched.append(EnrichedItem.unmatched(item))
            else:
                enriched.append(result)

        matched = sum(1 for e in enriched if e.is_matched)
        logger.info(f"Resolved {matched}/{len(enriched)} items")
        return enriched

    async def resolve(self, item: IdentifiedItem) -> EnrichedItem:
        """Resolve a single item; catalog misses yield an unmatched record."""
        logger.info(f"Resolving '{item.title}' ({item.kind.value}, year={item.known_year})")

        if item.kind == ItemKind.MOVIE:
            enriched = await self.match_movie(item)
        elif item.kind == ItemKind.TV:
            enriched = await self.match_tv(item)
        elif item.kind == ItemKind.DISC:
            enriched = await self.match_movie(item)
            if not enriched.is_matched:
                logger.info(f"Disc '{item.title}' not matched as movie, trying TV")
                enriched = await self.match_tv(item)
        else:
            logger.info(f"No catalog coverage for {item.kind.value} '{item.title}'")
            enriched = EnrichedItem.unmatched(item)

        if enriched.is_matched and self.tvdb is not None:
            enriched.tvdb_id = await self._resolve_supplemental(enriched)

        return enriched

    async def _resolve_supplemental(self, enriched: EnrichedItem) -> Optional[int]:
        try:
            return await self.tvdb.resolve_id(
                enriched.title,
                enriched.year,
                enriched.imdb_id,
                enriched.kind.value,
            )
        except Exception as e:
            logger.warning(f"TVDB lookup failed for '{enriched.title}': {e}")
            return None

    def _select(self, item: IdentifiedItem, candidates: list[CandidateRecord]) -> Optional[BestMatch]:
        return self.selector.select(
            item.title,
            item.known_year,
            candidates,
            name=lambda c: c.display_name,
            candidate_year=lambda c: c.year,
        )

    async def match_movie(self, item: IdentifiedItem) -> EnrichedItem:
        candidates = await self.tmdb.search(item.title, item.known_year, kind="movie")
        if not candidates:
            logger.warning(f"No TMDB movie results for '{item.title}'")
            return EnrichedItem.unmatched(item)

        match = self._select(item, candidates)
        if match is None:
            return EnrichedItem.unmatched(item)

        best = match.candidate
        logger.info(
            f"Movie match '{item.title}' -> '{best.display_name}' "
            f"({best.year}) score={match.score:.3f} {match.confidence.value}"
        )

        detail = await self.tmdb.fetch_detail(best.external_id, kind="movie")
        enriched = self._from_candidate(item, best, match, ItemKind.MOVIE)
        if detail:
            enriched.imdb_id = detail.imdb_id
            enriched.director = detail.director
            enriched.runtime = detail.runtime
            if detail.director:
                enriched.creator = detail.director
        return enriched

    async def match_tv(self, item: IdentifiedItem) -> EnrichedItem:
        search_title = extract_series_name(item.title)
        year = item.known_year

        candidates = await self.tmdb.search(search_title, year, kind="tv")
        if not candidates and search_title != item.title:
            logger.debug(f"Retrying TV search with original title '{item.title}'")
            candidates = await self.tmdb.search(item.title, year, kind="tv")
        if not candidates and year:
            logger.debug(f"Retrying TV search for '{search_title}' without year")
            candidates = await self.tmdb.search(search_title, None, kind="tv")

        if not candidates:
            logger.warning(f"No TMDB TV results for '{item.title}'")
            return EnrichedItem.unmatched(item)

        match = self._select(item, candidates)
        if match is None:
            return EnrichedItem.unmatched(item)

        best = match.candidate
        logger.info(
            f"TV match '{item.title}' -> '{best.display_name}' "
            f"({best.year}) score={match.score:.3f} {match.confidence.value}"
        )

        detail = await self.tmdb.fetch_detail(best.external_id, kind="tv")
        enriched = self._from_candidate(item, best, match, ItemKind.TV)
        if detail:
            enriched.imdb_id = detail.imdb_id
            enriched.network = detail.network
            enriched.seasons = detail.season_count
            enriched.show_status = detail.status
            if detail.creators:
                enriched.creator = detail.creators
        return enriched

    def _from_candidate(
        self,
        item: IdentifiedItem,
        candidate: CandidateRecord,
        match: BestMatch,
        kind: ItemKind,
    ) -> EnrichedItem:
        return EnrichedItem(
            title=item.title,
            creator=item.creator,
            kind=kind,
            confidence=match.confidence,
            source=MetadataSource.PRIMARY_CATALOG,
            tmdb_id=candidate.external_id,
            poster_url=poster_url(candidate.poster_ref),
            overview=candidate.overview,
            rating=candidate.rating_avg,
            release_date=candidate.release_date,
            genres=self.genre_cache.resolve(candidate.genre_ids),
            year=candidate.year,
        )
