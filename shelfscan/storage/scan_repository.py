"""
Scan Repository for ShelfScan

Async persistence boundary used by the scan pipeline and the API:
- Content-addressed image store
- Scan records and their status
- Enriched scan items (bulk insert, per-item update, delete by scan)
- Append-only usage/cost ledger
- Key-value settings
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from shelfscan.identification.types import (
    Confidence,
    EnrichedItem,
    IdentifiedItem,
    ItemKind,
    MetadataSource,
    ScanStatus,
)
from shelfscan.storage.models import (
    Base,
    ImageModel,
    ScanItemModel,
    ScanModel,
    SettingModel,
    UsageRecordModel,
)
from shelfscan.vision.preprocessing import hash_image


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class StoredImage:
    id: str
    hash: str
    data: bytes
    mime_type: str

    @classmethod
    def from_model(cls, model: ImageModel) -> "StoredImage":
        return cls(id=model.id, hash=model.hash, data=model.data, mime_type=model.mime_type)


@dataclass
class StoredItem:
    """Persisted enriched item with its raw vision fields."""

    id: str
    scan_id: str
    position: int
    enriched: EnrichedItem
    raw_title: str
    raw_creator: str
    raw_type: str
    raw_year: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, model: ScanItemModel) -> "StoredItem":
        enriched = EnrichedItem(
            title=model.title,
            creator=model.creator or "",
            kind=ItemKind(model.type),
            confidence=Confidence(model.confidence),
            source=MetadataSource(model.source),
            tmdb_id=model.tmdb_id,
            imdb_id=model.imdb_id,
            tvdb_id=model.tvdb_id,
            poster_url=model.poster_url,
            overview=model.overview,
            rating=model.rating,
            release_date=model.release_date,
            genres=model.genres,
            year=model.year,
            director=model.director,
            runtime=model.runtime,
            network=model.network,
            seasons=model.seasons,
            show_status=model.show_status,
            library_matched=bool(model.library_matched),
            library_ref=model.library_ref,
        )
        return cls(
            id=model.id,
            scan_id=model.scan_id,
            position=model.position,
            enriched=enriched,
            raw_title=model.raw_title,
            raw_creator=model.raw_creator or "",
            raw_type=model.raw_type,
            raw_year=model.raw_year,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def to_dict(self) -> dict:
        data = self.enriched.to_dict()
        data.update({
            "id": self.id,
            "scan_id": self.scan_id,
            "position": self.position,
            "raw_title": self.raw_title,
            "raw_creator": self.raw_creator,
            "raw_type": self.raw_type,
            "raw_year": self.raw_year,
        })
        return data


@dataclass
class StoredScan:
    id: str
    image_id: str
    model_id: str
    status: ScanStatus
    raw_response: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: list[StoredItem] = field(default_factory=list)

    @classmethod
    def from_model(cls, model: ScanModel, items: Optional[list[StoredItem]] = None) -> "StoredScan":
        return cls(
            id=model.id,
            image_id=model.image_id,
            model_id=model.model_id,
            status=ScanStatus(model.status),
            raw_response=model.raw_response,
            created_at=model.created_at,
            updated_at=model.updated_at,
            items=items or [],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "image_id": self.image_id,
            "model_id": self.model_id,
            "status": self.status.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "items": [item.to_dict() for item in self.items],
        }


@dataclass
class ScanSummary:
    id: str
    image_id: str
    model_id: str
    status: ScanStatus
    item_count: int
    total_cost: float
    created_at: Optional[datetime] = None


def _item_columns(item: EnrichedItem) -> dict:
    return {
        "title": item.title,
        "creator": item.creator,
        "type": item.kind.value,
        "confidence": item.confidence.value,
        "source": item.source.value,
        "tmdb_id": item.tmdb_id,
        "imdb_id": item.imdb_id,
        "tvdb_id": item.tvdb_id,
        "poster_url": item.poster_url,
        "overview": item.overview,
        "rating": item.rating,
        "release_date": item.release_date,
        "genres": item.genres,
        "year": item.year,
        "director": item.director,
        "runtime": item.runtime,
        "network": item.network,
        "seasons": item.seasons,
        "show_status": item.show_status,
        "library_matched": item.library_matched,
        "library_ref": item.library_ref,
    }


class ScanRepository:
    """
    Async repository for scans and everything hanging off them.

    Usage:
        repo = ScanRepository.from_url("sqlite+aiosqlite:///./shelfscan.db")
        await repo.create_tables()
        image_id = await repo.store_image(data, "image/jpeg")
        scan = await repo.create_scan(image_id, "openai/gpt-4o")
    """

    def __init__(self, session_factory: async_sessionmaker, engine: Optional[AsyncEngine] = None):
        self.session_factory = session_factory
        self.engine = engine

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "ScanRepository":
        kwargs = {"echo": echo}
        if ":memory:" in database_url:
            # One shared connection, otherwise every session sees an empty database
            kwargs.update(
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        engine = create_async_engine(database_url, **kwargs)
        factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        logger.info(f"ScanRepository initialized: {database_url[:50]}")
        return cls(factory, engine)

    async def create_tables(self) -> None:
        if self.engine is None:
            raise RuntimeError("Repository has no engine to create tables with")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    async def store_image(self, data: bytes, mime_type: str) -> str:
        """Store image bytes once per content hash; returns the image id."""
        digest = hash_image(data)
        async with self.session_factory() as session:
            existing = await session.scalar(select(ImageModel).where(ImageModel.hash == digest))
            if existing is not None:
                logger.debug(f"Reusing stored image {existing.id}")
                return existing.id

            image = ImageModel(id=_new_id(), hash=digest, data=data, mime_type=mime_type)
            session.add(image)
            await session.commit()
            return image.id

    async def get_image(self, image_id: str) -> Optional[StoredImage]:
        async with self.session_factory() as session:
            image = await session.get(ImageModel, image_id)
            return StoredImage.from_model(image) if image else None

    # ------------------------------------------------------------------
    # Scans
    # ------------------------------------------------------------------

    async def create_scan(self, image_id: str, model_id: str) -> StoredScan:
        async with self.session_factory() as session:
            scan = ScanModel(
                id=_new_id(),
                image_id=image_id,
                model_id=model_id,
                status=ScanStatus.PENDING.value,
            )
            session.add(scan)
            await session.commit()
            return StoredScan.from_model(scan)

    async def update_scan_status(self, scan_id: str, status: ScanStatus) -> None:
        async with self.session_factory() as session:
            scan = await session.get(ScanModel, scan_id)
            if scan is None:
                raise KeyError(scan_id)
            scan.status = status.value
            scan.updated_at = datetime.utcnow()
            await session.commit()

    async def update_scan_model(self, scan_id: str, model_id: str) -> None:
        async with self.session_factory() as session:
            scan = await session.get(ScanModel, scan_id)
            if scan is None:
                raise KeyError(scan_id)
            scan.model_id = model_id
            scan.updated_at = datetime.utcnow()
            await session.commit()

    async def set_raw_response(self, scan_id: str, raw_response: str) -> None:
        async with self.session_factory() as session:
            scan = await session.get(ScanModel, scan_id)
            if scan is None:
                raise KeyError(scan_id)
            scan.raw_response = raw_response
            scan.updated_at = datetime.utcnow()
            await session.commit()

    async def get_scan(self, scan_id: str) -> Optional[StoredScan]:
        """Scan with its items in ordinal order."""
        async with self.session_factory() as session:
            scan = await session.get(ScanModel, scan_id)
            if scan is None:
                return None
            rows = await session.scalars(
                select(ScanItemModel)
                .where(ScanItemModel.scan_id == scan_id)
                .order_by(ScanItemModel.position)
            )
            return StoredScan.from_model(scan, [StoredItem.from_model(r) for r in rows])

    async def list_scans(self, limit: int = 100, offset: int = 0) -> list[ScanSummary]:
        """Newest first, with item counts and summed vision cost."""
        item_counts = (
            select(ScanItemModel.scan_id, func.count(ScanItemModel.id).label("item_count"))
            .group_by(ScanItemModel.scan_id)
            .subquery()
        )
        costs = (
            select(UsageRecordModel.scan_id, func.sum(UsageRecordModel.cost_usd).label("total_cost"))
            .group_by(UsageRecordModel.scan_id)
            .subquery()
        )
        query = (
            select(ScanModel, item_counts.c.item_count, costs.c.total_cost)
            .outerjoin(item_counts, item_counts.c.scan_id == ScanModel.id)
            .outerjoin(costs, costs.c.scan_id == ScanModel.id)
            .order_by(ScanModel.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        async with self.session_factory() as session:
            result = await session.execute(query)
            return [
                ScanSummary(
                    id=scan.id,
                    image_id=scan.image_id,
                    model_id=scan.model_id,
                    status=ScanStatus(scan.status),
                    item_count=item_count or 0,
                    total_cost=total_cost or 0.0,
                    created_at=scan.created_at,
                )
                for scan, item_count, total_cost in result.all()
            ]

    async def delete_scan(self, scan_id: str) -> bool:
        """Delete a scan with its items and usage records."""
        async with self.session_factory() as session:
            scan = await session.get(ScanModel, scan_id)
            if scan is None:
                return False
            await session.execute(delete(ScanItemModel).where(ScanItemModel.scan_id == scan_id))
            await session.execute(delete(UsageRecordModel).where(UsageRecordModel.scan_id == scan_id))
            await session.delete(scan)
            await session.commit()
            return True

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    async def insert_items(
        self,
        scan_id: str,
        enriched: list[EnrichedItem],
        raw_items: list[IdentifiedItem],
    ) -> None:
        """Bulk insert enriched items alongside the raw items they came from."""
        if len(enriched) != len(raw_items):
            raise ValueError("Enriched and raw item lists must be index-aligned")

        async with self.session_factory() as session:
            for position, (item, raw) in enumerate(zip(enriched, raw_items)):
                session.add(
                    ScanItemModel(
                        id=_new_id(),
                        scan_id=scan_id,
                        position=position,
                        raw_title=raw.title,
                        raw_creator=raw.creator,
                        raw_type=raw.kind.value,
                        raw_year=raw.year,
                        **_item_columns(item),
                    )
                )
            await session.commit()

    async def get_item(self, scan_id: str, item_id: str) -> Optional[StoredItem]:
        async with self.session_factory() as session:
            item = await session.scalar(
                select(ScanItemModel).where(
                    ScanItemModel.id == item_id,
                    ScanItemModel.scan_id == scan_id,
                )
            )
            return StoredItem.from_model(item) if item else None

    async def update_item(
        self,
        item_id: str,
        enriched: EnrichedItem,
        raw_title: str,
        raw_creator: str,
    ) -> Optional[StoredItem]:
        async with self.session_factory() as session:
            item = await session.get(ScanItemModel, item_id)
            if item is None:
                return None
            for column, value in _item_columns(enriched).items():
                setattr(item, column, value)
            item.raw_title = raw_title
            item.raw_creator = raw_creator
            item.updated_at = datetime.utcnow()
            await session.commit()
            return StoredItem.from_model(item)

    async def delete_items(self, scan_id: str) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                delete(ScanItemModel).where(ScanItemModel.scan_id == scan_id)
            )
            await session.commit()
            return result.rowcount or 0

    # ------------------------------------------------------------------
    # Usage ledger
    # ------------------------------------------------------------------

    async def record_usage(
        self,
        scan_id: str,
        model: str,
        input_tokens: int,
        output_tokens: int,
        cost_usd: float,
    ) -> None:
        async with self.session_factory() as session:
            session.add(
                UsageRecordModel(
                    id=_new_id(),
                    scan_id=scan_id,
                    model=model,
                    input_tokens=input_tokens,
                    output_tokens=output_tokens,
                    cost_usd=cost_usd,
                )
            )
            await session.commit()

    async def list_usage(self, limit: int = 500) -> list[dict]:
        """Most recent usage records first."""
        query = (
            select(UsageRecordModel)
            .order_by(UsageRecordModel.created_at.desc())
            .limit(limit)
        )
        async with self.session_factory() as session:
            rows = await session.scalars(query)
            return [
                {
                    "id": row.id,
                    "scan_id": row.scan_id,
                    "model": row.model,
                    "input_tokens": row.input_tokens,
                    "output_tokens": row.output_tokens,
                    "cost_usd": row.cost_usd,
                    "created_at": row.created_at.isoformat() if row.created_at else None,
                }
                for row in rows
            ]

    async def usage_summary(self) -> dict:
        """Totals overall and per model."""
        query = (
            select(
                UsageRecordModel.model,
                func.count(UsageRecordModel.id),
                func.sum(UsageRecordModel.input_tokens),
                func.sum(UsageRecordModel.output_tokens),
                func.sum(UsageRecordModel.cost_usd),
            )
            .group_by(UsageRecordModel.model)
            .order_by(UsageRecordModel.model)
        )
        async with self.session_factory() as session:
            rows = (await session.execute(query)).all()

        by_model = [
            {
                "model": model,
                "calls": calls,
                "input_tokens": input_tokens or 0,
                "output_tokens": output_tokens or 0,
                "cost_usd": cost or 0.0,
            }
            for model, calls, input_tokens, output_tokens, cost in rows
        ]
        return {
            "total_calls": sum(m["calls"] for m in by_model),
            "total_input_tokens": sum(m["input_tokens"] for m in by_model),
            "total_output_tokens": sum(m["output_tokens"] for m in by_model),
            "total_cost_usd": sum(m["cost_usd"] for m in by_model),
            "by_model": by_model,
        }

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def get_settings(self) -> dict[str, str]:
        async with self.session_factory() as session:
            rows = await session.scalars(select(SettingModel))
            return {row.key: row.value for row in rows}

    async def upsert_setting(self, key: str, value: str) -> None:
        async with self.session_factory() as session:
            setting = await session.get(SettingModel, key)
            if setting is None:
                session.add(SettingModel(key=key, value=value))
            else:
                setting.value = value
                setting.updated_at = datetime.utcnow()
            await session.commit()
