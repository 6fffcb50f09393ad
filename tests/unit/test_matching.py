"""
Unit tests for title normalization, similarity scoring and best-match selection.
"""

import pytest

from shelfscan.identification.matcher import BestMatchSelector
from shelfscan.identification.normalizer import (
    extract_series_name,
    normalize_library_title,
    strip_article,
    strip_series_suffix,
)
from shelfscan.identification.similarity import (
    MatchPolicy,
    similarity,
    title_score,
)
from shelfscan.identification.types import Confidence

from tests.fakes import movie, series


SAMPLE_TITLES = [
    "Breaking Bad - Season 1",
    "Firefly: The Complete Series",
    "The Wire (Season 2)",
    "Lost - S01",
    "The Sopranos Season 3",
    "Friends - The Complete First Season",
    "Seinfeld: Complete 3rd Season",
    "Alien",
    "Season of the Witch",
    "Doctor Who (2005)",
    "Firefly - Season 1 - S01",
    "Show (Season 1) - The Complete Series",
    "Show (Season 1) (Season 2)",
    "",
]


class TestStripArticle:
    """Tests for leading/trailing article removal."""

    @pytest.mark.parametrize("title,expected", [
        ("The Matrix", "Matrix"),
        ("A Quiet Place", "Quiet Place"),
        ("an American Werewolf in London", "American Werewolf in London"),
        ("Avengers, The", "Avengers"),
        ("Theater of Blood", "Theater of Blood"),
        ("Anchorman", "Anchorman"),
    ])
    def test_strip_article(self, title, expected):
        assert strip_article(title) == expected

    def test_only_one_article_removed(self):
        assert strip_article("The The") == "The"


class TestStripSeriesSuffix:
    """Tests for season/series decoration removal."""

    @pytest.mark.parametrize("title,expected", [
        ("Breaking Bad - Season 1", "Breaking Bad"),
        ("Firefly: The Complete Series", "Firefly"),
        ("The Wire (Season 2)", "The Wire"),
        ("The Office (S3)", "The Office"),
        ("Lost - S01", "Lost"),
        ("The Sopranos Season 3", "The Sopranos"),
        ("Twin Peaks: Season Two", "Twin Peaks: Season Two"),
        ("Deadwood - Season Three", "Deadwood - Season Three"),
        ("Friends - The Complete First Season", "Friends"),
        ("Seinfeld: Complete 3rd Season", "Seinfeld"),
        ("Alien", "Alien"),
    ])
    def test_strip_series_suffix(self, title, expected):
        assert strip_series_suffix(title) == expected

    @pytest.mark.parametrize("title", SAMPLE_TITLES)
    def test_idempotent(self, title):
        once = strip_series_suffix(title)
        assert strip_series_suffix(once) == once

    @pytest.mark.parametrize("title,expected", [
        ("Firefly - Season 1 - S01", "Firefly"),
        ("Show (Season 1) - The Complete Series", "Show"),
        ("Show (Season 1) (Season 2)", "Show"),
    ])
    def test_stacked_suffixes(self, title, expected):
        assert strip_series_suffix(title) == expected

    def test_ordinal_season_number(self):
        assert strip_series_suffix("Dexter - Season First") == "Dexter"


class TestExtractSeriesName:

    def test_removes_trailing_year(self):
        assert extract_series_name("Doctor Who (2005)") == "Doctor Who"

    def test_removes_suffix_then_year(self):
        assert extract_series_name("The Office (2005) - Season 2") == "The Office"

    def test_plain_title_unchanged(self):
        assert extract_series_name("Breaking Bad") == "Breaking Bad"


class TestNormalizeLibraryTitle:

    def test_folds_case_and_punctuation(self):
        assert normalize_library_title("Star Wars: Episode IV - A New Hope") == "star wars episode iv a new hope"

    def test_collapses_whitespace(self):
        assert normalize_library_title("  The   Thing  ") == "the thing"

    def test_all_punctuation_is_empty(self):
        assert normalize_library_title("!!!") == ""


class TestSimilarity:
    """Tests for normalized edit-distance similarity."""

    @pytest.mark.parametrize("a,b", [
        ("alien", "aliens"),
        ("", "abc"),
        ("breaking bad", "breaking bad - season 1"),
        ("kitten", "sitting"),
        ("x", "y"),
    ])
    def test_bounds(self, a, b):
        assert 0.0 <= similarity(a, b) <= 1.0
        assert similarity(a, a) == 1.0

    def test_empty_strings_identical(self):
        assert similarity("", "") == 1.0

    def test_against_empty(self):
        assert similarity("abc", "") == 0.0

    def test_known_distance(self):
        assert similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)


class TestTitleScore:
    """Tests for media title scoring."""

    def test_season_suffix_scores_via_stripped_variant(self):
        query, candidate = "Breaking Bad - Season 1", "Breaking Bad"
        raw = similarity(query.lower(), candidate.lower())

        score = title_score(query, candidate, 2008, 2008)

        assert raw < 0.85
        assert score == 1.0
        assert MatchPolicy().confidence_for(score) == Confidence.HIGH

    def test_inverted_article_matches(self):
        assert title_score("The Avengers", "Avengers, The", 2012, 2012) >= 0.85
        assert title_score("The Avengers", "Avengers, The") >= 0.85

    def test_year_bonus(self):
        base = title_score("Alien", "Aliens")
        assert base == pytest.approx(1 - 1 / 6)
        assert title_score("Alien", "Aliens", 1979, 1979) == pytest.approx(base + 0.10)

    def test_no_bonus_for_different_year(self):
        assert title_score("Alien", "Aliens", 1979, 1986) == pytest.approx(title_score("Alien", "Aliens"))

    def test_zero_year_means_unknown(self):
        assert title_score("Alien", "Aliens", 0, 0) == pytest.approx(title_score("Alien", "Aliens"))

    def test_clamped_to_one(self):
        assert title_score("Alien", "Alien", 1979, 1979) == 1.0

    def test_case_insensitive(self):
        assert title_score("ALIEN", "alien") == 1.0

    def test_custom_bonus(self):
        policy = MatchPolicy(year_bonus=0.05)
        base = title_score("Alien", "Aliens")
        assert title_score("Alien", "Aliens", 1979, 1979, policy) == pytest.approx(base + 0.05)


class TestBestMatchSelector:
    """Tests for candidate selection."""

    @pytest.fixture
    def selector(self):
        return BestMatchSelector()

    def _select(self, selector, title, year, candidates):
        return selector.select(
            title,
            year,
            candidates,
            name=lambda c: c.display_name,
            candidate_year=lambda c: c.year,
        )

    def test_picks_highest_score(self, selector):
        candidates = [movie(8077, "Alien 3", 1992), movie(348, "Alien", 1979)]

        match = self._select(selector, "Alien", 1979, candidates)

        assert match.candidate.external_id == 348
        assert match.confidence == Confidence.HIGH

    def test_tie_goes_to_first_candidate(self, selector):
        candidates = [movie(1, "Solaris"), movie(2, "Solaris")]

        match = self._select(selector, "Solaris", None, candidates)

        assert match.candidate.external_id == 1

    def test_year_bonus_changes_winner(self, selector):
        candidates = [movie(679, "Aliens", 1986), movie(2, "Alie", 1979)]

        match = self._select(selector, "Alien", 1979, candidates)

        assert match.candidate.external_id == 2

    def test_low_tier(self, selector):
        match = self._select(selector, "Alien", None, [movie(679, "Aliens", 1986)])

        assert match.confidence == Confidence.LOW
        assert 0.50 <= match.score < 0.85

    def test_rejects_below_threshold(self, selector):
        assert self._select(selector, "Alien", None, [movie(1, "Zardoz", 1974)]) is None

    def test_year_bonus_cannot_lift_poor_match(self, selector):
        candidates = [movie(1, "Alien Nation Extended", 1988)]

        assert self._select(selector, "Alien", 1988, candidates) is None

    def test_no_candidates(self, selector):
        assert self._select(selector, "Alien", 1979, []) is None

    def test_accepted_scores_respect_threshold(self, selector):
        candidates = [
            series(1, "Breaking Bad", 2008),
            series(2, "Breaking Point", 2008),
            series(3, "Bad Breaking", 2008),
        ]
        for query in ("Breaking Bad - Season 1", "Breaking", "Bad", "Broken Bard"):
            match = self._select(selector, query, 2008, candidates)
            if match is not None:
                assert match.score >= 0.50

    def test_custom_policy(self):
        strict = BestMatchSelector(MatchPolicy(accept_threshold=0.9))

        match = strict.select(
            "Alien", None, [movie(679, "Aliens")],
            name=lambda c: c.display_name,
            candidate_year=lambda c: c.year,
        )

        assert match is None
