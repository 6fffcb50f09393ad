"""
Personal Library Module

Cross-references identified media against a Plex server.
"""

from shelfscan.library.plex import (
    PlexClient,
    LibraryError,
    LibraryItem,
    LibrarySection,
    LibraryGuids,
    LibraryMatch,
    parse_guids,
    find_library_match,
    merge_library_match,
    cross_reference,
)

__all__ = [
    "PlexClient",
    "LibraryError",
    "LibraryItem",
    "LibrarySection",
    "LibraryGuids",
    "LibraryMatch",
    "parse_guids",
    "find_library_match",
    "merge_library_match",
    "cross_reference",
]
