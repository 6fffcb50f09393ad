"""
Title Normalizer

Pure string transforms applied to media titles before scoring:
- Leading article removal
- Season / series decoration stripping
- Library-style title folding (case, punctuation, whitespace)

Vision models frequently append season decorations ("Show - Season 1",
"Show: The Complete Series") that catalogs never carry, so every matcher
compares against a stripped variant as well as the raw one.
"""

import re

_ORDINALS = "first|second|third|fourth|fifth|sixth|seventh|eighth|ninth|tenth"

ARTICLE_PATTERN = re.compile(r"^(the|a|an)\s+", re.IGNORECASE)
# Catalog-style inversion: "Avengers, The"
INVERTED_ARTICLE_PATTERN = re.compile(r",\s*(the|a|an)\s*$", re.IGNORECASE)

# Applied in order, repeated until nothing more matches
SERIES_SUFFIX_PATTERNS = [
    # "Show (Season 1)", "Show (S2)"
    re.compile(r"\s*\((?:season|series|s)\s*\d+\)\s*$", re.IGNORECASE),
    # "Show - Season 1", "Show: Complete Series 2"
    re.compile(
        rf"\s*[-:]\s*(?:the\s+)?(?:complete\s+)?(?:season|series)\s+(?:\d+|{_ORDINALS})\s*$",
        re.IGNORECASE,
    ),
    # "Show Season 1"
    re.compile(
        rf"\s+(?:the\s+)?(?:complete\s+)?(?:season|series)\s+(?:\d+|{_ORDINALS})\s*$",
        re.IGNORECASE,
    ),
    # "Show - S01"
    re.compile(r"\s*[-:]\s*s\d+\s*$", re.IGNORECASE),
    # "Show - The Complete Series"
    re.compile(r"\s*[-:]\s*(?:the\s+)?complete\s+series\s*$", re.IGNORECASE),
    # "Show - The Complete First Season", "Show: Complete 3rd Season"
    re.compile(
        rf"\s*[-:]\s*(?:the\s+)?complete\s+(?:{_ORDINALS}|\d+(?:st|nd|rd|th)?)\s+season\s*$",
        re.IGNORECASE,
    ),
]

YEAR_SUFFIX_PATTERN = re.compile(r"\s*\(\d{4}\)\s*$")

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def strip_article(text: str) -> str:
    """Remove a single leading "the", "a" or "an" (or its trailing ", The" inversion)."""
    stripped = ARTICLE_PATTERN.sub("", text, count=1)
    if stripped == text:
        stripped = INVERTED_ARTICLE_PATTERN.sub("", text, count=1)
    return stripped.strip()


def strip_series_suffix(text: str) -> str:
    """
    Remove trailing season/series decorations.

    Examples:
        >>> strip_series_suffix("Breaking Bad - Season 1")
        'Breaking Bad'
        >>> strip_series_suffix("Firefly: The Complete Series")
        'Firefly'
    """
    cleaned = text.strip()
    # Stacked decorations ("Show (Season 1) - S01") need repeated passes
    while True:
        previous = cleaned
        for pattern in SERIES_SUFFIX_PATTERNS:
            cleaned = pattern.sub("", cleaned)
        cleaned = cleaned.strip()
        if cleaned == previous:
            return cleaned


def extract_series_name(title: str) -> str:
    """Derive a catalog search title: season decorations and a trailing "(YYYY)" removed."""
    name = strip_series_suffix(title)
    name = YEAR_SUFFIX_PATTERN.sub("", name)
    return name.strip()


def normalize_library_title(title: str) -> str:
    """Fold a title for personal-library comparison."""
    folded = _NON_ALNUM.sub("", title.lower())
    return _WHITESPACE.sub(" ", folded).strip()
