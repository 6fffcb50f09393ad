"""
ShelfScan Test Suite

Tests are organized into:
- unit/: Unit tests for matching, catalogs, vision, storage and the pipeline
- integration/: Integration tests for the API
"""
