"""
Database models for ShelfScan.
"""

from datetime import datetime

from sqlalchemy import (
    Column,
    String,
    Integer,
    Float,
    Text,
    Boolean,
    DateTime,
    LargeBinary,
    ForeignKey,
    Index,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ImageModel(Base):
    """Uploaded shelf photo, content-addressed by SHA-256."""
    __tablename__ = "images"

    id = Column(String(36), primary_key=True)
    hash = Column(String(64), unique=True, index=True, nullable=False)
    data = Column(LargeBinary, nullable=False)
    mime_type = Column(String(100), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class ScanModel(Base):
    __tablename__ = "scans"

    id = Column(String(36), primary_key=True)
    image_id = Column(String(36), ForeignKey("images.id"), nullable=False)
    model_id = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    # Vision output kept verbatim for re-enrichment
    raw_response = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ScanItemModel(Base):
    __tablename__ = "scan_items"

    id = Column(String(36), primary_key=True)
    scan_id = Column(String(36), ForeignKey("scans.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    title = Column(String(500), nullable=False)
    creator = Column(String(500), default="")
    type = Column(String(20), nullable=False)
    confidence = Column(String(20), nullable=False)
    source = Column(String(20), nullable=False)

    # External ids
    tmdb_id = Column(Integer)
    imdb_id = Column(String(20))
    tvdb_id = Column(Integer)

    # Catalog metadata
    poster_url = Column(String(500))
    overview = Column(Text)
    rating = Column(Float)
    release_date = Column(String(20))
    genres = Column(String(500))
    year = Column(Integer)
    director = Column(String(500))
    runtime = Column(Integer)
    network = Column(String(200))
    seasons = Column(Integer)
    show_status = Column(String(50))

    # Personal library
    library_matched = Column(Boolean, default=False)
    library_ref = Column(String(100))

    # Vision output as received
    raw_title = Column(String(500), nullable=False)
    raw_creator = Column(String(500), default="")
    raw_type = Column(String(20), nullable=False)
    raw_year = Column(Integer)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_scan_items_scan", "scan_id", "position"),
    )


class UsageRecordModel(Base):
    """One vision call's token usage and cost."""
    __tablename__ = "usage_records"

    id = Column(String(36), primary_key=True)
    scan_id = Column(String(36), ForeignKey("scans.id", ondelete="CASCADE"), nullable=False, index=True)
    model = Column(String(100), nullable=False)
    input_tokens = Column(Integer, nullable=False, default=0)
    output_tokens = Column(Integer, nullable=False, default=0)
    cost_usd = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, default=datetime.utcnow)


class SettingModel(Base):
    __tablename__ = "settings"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
