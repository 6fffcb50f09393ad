"""
Scan Pipeline Module

Orchestrates vision identification, enrichment and persistence of scans.
"""

from shelfscan.pipeline.events import (
    ScanEvent,
    EventChannel,
    CREATED,
    STATUS,
    COMPLETE,
    ERROR,
)
from shelfscan.pipeline.orchestrator import (
    ScanOrchestrator,
    ScanHandle,
    ScanError,
    ServiceNotConfiguredError,
    InvalidScanRequestError,
    ScanNotFoundError,
    ReenrichUnavailableError,
)

__all__ = [
    "ScanEvent",
    "EventChannel",
    "CREATED",
    "STATUS",
    "COMPLETE",
    "ERROR",
    "ScanOrchestrator",
    "ScanHandle",
    "ScanError",
    "ServiceNotConfiguredError",
    "InvalidScanRequestError",
    "ScanNotFoundError",
    "ReenrichUnavailableError",
]
