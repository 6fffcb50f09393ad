"""
Storage Module

Relational persistence for images, scans, items, usage and settings.
"""

from shelfscan.storage.models import (
    Base,
    ImageModel,
    ScanModel,
    ScanItemModel,
    UsageRecordModel,
    SettingModel,
)
from shelfscan.storage.scan_repository import (
    ScanRepository,
    StoredImage,
    StoredScan,
    StoredItem,
    ScanSummary,
)

__all__ = [
    "Base",
    "ImageModel",
    "ScanModel",
    "ScanItemModel",
    "UsageRecordModel",
    "SettingModel",
    "ScanRepository",
    "StoredImage",
    "StoredScan",
    "StoredItem",
    "ScanSummary",
]
