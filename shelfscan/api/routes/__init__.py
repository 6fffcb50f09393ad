"""
API Routes for ShelfScan

Route modules:
- scans: Shelf photo upload, scan history, replays and item edits
- system: Settings, usage, service status, log level and library browsing
"""

from shelfscan.api.routes.scans import router as scans_router
from shelfscan.api.routes.system import router as system_router

__all__ = [
    "scans_router",
    "system_router",
]
