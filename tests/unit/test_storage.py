"""
Unit tests for the scan repository.
"""

import pytest

from shelfscan.identification.types import (
    Confidence,
    EnrichedItem,
    IdentifiedItem,
    ItemKind,
    MetadataSource,
    ScanStatus,
)

pytestmark = pytest.mark.asyncio


def raw(title, kind=ItemKind.MOVIE, year=None, creator=""):
    return IdentifiedItem(title=title, creator=creator, kind=kind, year=year)


def matched(item: IdentifiedItem, tmdb_id: int, **kwargs) -> EnrichedItem:
    return EnrichedItem(
        title=item.title,
        creator=item.creator,
        kind=item.kind,
        confidence=Confidence.HIGH,
        source=MetadataSource.PRIMARY_CATALOG,
        tmdb_id=tmdb_id,
        year=item.year,
        **kwargs,
    )


@pytest.fixture
def raw_items():
    return [
        raw("Alien", year=1979, creator="Ridley Scott"),
        raw("Kind of Blue", ItemKind.VINYL, 1959, creator="Miles Davis"),
        raw("Heat", year=1995),
    ]


@pytest.fixture
def enriched_items(raw_items):
    return [
        matched(raw_items[0], 348, genres="Science Fiction", imdb_id="tt0078748"),
        EnrichedItem.unmatched(raw_items[1]),
        matched(raw_items[2], 949, rating=7.9),
    ]


async def new_scan(repository, data=b"shelf-photo", model_id="openai/gpt-4o"):
    image_id = await repository.store_image(data, "image/jpeg")
    return await repository.create_scan(image_id, model_id)


class TestImages:
    """Tests for the content-addressed image store."""

    async def test_store_and_fetch(self, repository):
        image_id = await repository.store_image(b"jpeg-bytes", "image/jpeg")

        image = await repository.get_image(image_id)

        assert image.data == b"jpeg-bytes"
        assert image.mime_type == "image/jpeg"
        assert len(image.hash) == 64

    async def test_identical_bytes_deduplicated(self, repository):
        first = await repository.store_image(b"same", "image/jpeg")
        second = await repository.store_image(b"same", "image/png")
        other = await repository.store_image(b"different", "image/jpeg")

        assert first == second
        assert other != first

    async def test_missing_image(self, repository):
        assert await repository.get_image("nope") is None


class TestScans:
    """Tests for scan records."""

    async def test_new_scan_is_pending(self, repository):
        scan = await new_scan(repository)

        stored = await repository.get_scan(scan.id)

        assert stored.status == ScanStatus.PENDING
        assert stored.model_id == "openai/gpt-4o"
        assert stored.items == []
        assert stored.raw_response is None
        assert stored.created_at is not None

    async def test_status_model_and_raw_response_updates(self, repository):
        scan = await new_scan(repository)

        await repository.update_scan_status(scan.id, ScanStatus.COMPLETE)
        await repository.update_scan_model(scan.id, "anthropic/claude-sonnet-4")
        await repository.set_raw_response(scan.id, '{"items": []}')

        stored = await repository.get_scan(scan.id)
        assert stored.status == ScanStatus.COMPLETE
        assert stored.model_id == "anthropic/claude-sonnet-4"
        assert stored.raw_response == '{"items": []}'

    async def test_update_missing_scan_raises(self, repository):
        with pytest.raises(KeyError):
            await repository.update_scan_status("nope", ScanStatus.ERROR)

    async def test_missing_scan(self, repository):
        assert await repository.get_scan("nope") is None

    async def test_to_dict(self, repository, raw_items, enriched_items):
        scan = await new_scan(repository)
        await repository.insert_items(scan.id, enriched_items, raw_items)

        data = (await repository.get_scan(scan.id)).to_dict()

        assert set(data) == {"id", "image_id", "model_id", "status", "created_at", "updated_at", "items"}
        assert data["status"] == "pending"
        assert data["items"][0]["kind"] == "movie"
        assert data["items"][0]["confidence"] == "high"
        assert data["items"][0]["raw_title"] == "Alien"
        assert data["items"][1]["source"] == "none"


class TestItems:
    """Tests for scan items."""

    async def test_items_kept_in_order(self, repository, raw_items, enriched_items):
        scan = await new_scan(repository)

        await repository.insert_items(scan.id, enriched_items, raw_items)

        stored = await repository.get_scan(scan.id)
        assert [i.position for i in stored.items] == [0, 1, 2]
        assert [i.enriched.title for i in stored.items] == ["Alien", "Kind of Blue", "Heat"]
        assert stored.items[0].enriched.genres == "Science Fiction"
        assert stored.items[0].raw_creator == "Ridley Scott"
        assert stored.items[1].enriched.confidence == Confidence.UNMATCHED
        assert stored.items[1].raw_type == "vinyl"
        assert stored.items[2].enriched.rating == 7.9

    async def test_misaligned_lists_rejected(self, repository, raw_items, enriched_items):
        scan = await new_scan(repository)

        with pytest.raises(ValueError):
            await repository.insert_items(scan.id, enriched_items[:2], raw_items)

        assert (await repository.get_scan(scan.id)).items == []

    async def test_update_item(self, repository, raw_items, enriched_items):
        scan = await new_scan(repository)
        await repository.insert_items(scan.id, enriched_items, raw_items)
        target = (await repository.get_scan(scan.id)).items[1]

        replacement = matched(raw("Kind of Blue (Legacy Edition)", ItemKind.VINYL, 1959), 1, library_matched=True)
        updated = await repository.update_item(target.id, replacement, "Kind of Blue (Legacy Edition)", "Miles Davis")

        assert updated.enriched.title == "Kind of Blue (Legacy Edition)"
        assert updated.enriched.library_matched
        assert updated.raw_title == "Kind of Blue (Legacy Edition)"
        assert updated.position == 1

        fetched = await repository.get_item(scan.id, target.id)
        assert fetched.enriched.tmdb_id == 1

    async def test_get_item_scoped_to_scan(self, repository, raw_items, enriched_items):
        scan = await new_scan(repository)
        other = await new_scan(repository, data=b"another-photo")
        await repository.insert_items(scan.id, enriched_items, raw_items)
        item_id = (await repository.get_scan(scan.id)).items[0].id

        assert await repository.get_item(scan.id, item_id) is not None
        assert await repository.get_item(other.id, item_id) is None

    async def test_update_missing_item(self, repository, raw_items):
        assert await repository.update_item("nope", EnrichedItem.unmatched(raw_items[0]), "x", "") is None

    async def test_delete_items(self, repository, raw_items, enriched_items):
        scan = await new_scan(repository)
        await repository.insert_items(scan.id, enriched_items, raw_items)

        deleted = await repository.delete_items(scan.id)

        assert deleted == 3
        assert (await repository.get_scan(scan.id)).items == []


class TestListAndDelete:
    """Tests for listing and deleting scans."""

    async def test_list_with_counts_and_cost(self, repository, raw_items, enriched_items):
        scan = await new_scan(repository)
        empty = await new_scan(repository, data=b"empty-shelf")
        await repository.insert_items(scan.id, enriched_items, raw_items)
        await repository.record_usage(scan.id, "openai/gpt-4o", 1000, 200, 0.0045)
        await repository.record_usage(scan.id, "openai/gpt-4o", 1000, 200, 0.0045)

        summaries = {s.id: s for s in await repository.list_scans()}

        assert summaries[scan.id].item_count == 3
        assert summaries[scan.id].total_cost == pytest.approx(0.009)
        assert summaries[empty.id].item_count == 0
        assert summaries[empty.id].total_cost == 0.0

    async def test_list_pagination(self, repository):
        for i in range(3):
            await new_scan(repository, data=f"photo-{i}".encode())

        first_page = await repository.list_scans(limit=2)
        second_page = await repository.list_scans(limit=2, offset=2)

        assert len(first_page) == 2
        assert len(second_page) == 1
        assert {s.id for s in first_page}.isdisjoint({s.id for s in second_page})

    async def test_delete_scan_removes_items_and_usage(self, repository, raw_items, enriched_items):
        scan = await new_scan(repository)
        await repository.insert_items(scan.id, enriched_items, raw_items)
        await repository.record_usage(scan.id, "openai/gpt-4o", 1000, 200, 0.0045)

        assert await repository.delete_scan(scan.id) is True

        assert await repository.get_scan(scan.id) is None
        assert await repository.list_usage() == []
        assert await repository.get_image(scan.image_id) is not None

    async def test_delete_missing_scan(self, repository):
        assert await repository.delete_scan("nope") is False


class TestUsageAndSettings:
    """Tests for the usage ledger and settings."""

    async def test_usage_records_and_summary(self, repository):
        scan = await new_scan(repository)
        await repository.record_usage(scan.id, "openai/gpt-4o", 1000, 200, 0.0045)
        await repository.record_usage(scan.id, "google/gemini-2.0-flash-001", 2000, 500, 0.0004)

        records = await repository.list_usage()
        summary = await repository.usage_summary()

        assert len(records) == 2
        assert {r["model"] for r in records} == {"openai/gpt-4o", "google/gemini-2.0-flash-001"}
        assert all(r["scan_id"] == scan.id for r in records)
        assert summary["total_calls"] == 2
        assert summary["total_input_tokens"] == 3000
        assert summary["total_output_tokens"] == 700
        assert summary["total_cost_usd"] == pytest.approx(0.0049)
        assert [m["model"] for m in summary["by_model"]] == ["google/gemini-2.0-flash-001", "openai/gpt-4o"]

    async def test_empty_summary(self, repository):
        summary = await repository.usage_summary()

        assert summary["total_calls"] == 0
        assert summary["by_model"] == []

    async def test_settings_upsert(self, repository):
        assert await repository.get_settings() == {}

        await repository.upsert_setting("default_model", "openai/gpt-4o")
        await repository.upsert_setting("default_model", "anthropic/claude-sonnet-4")
        await repository.upsert_setting("theme", "dark")

        assert await repository.get_settings() == {
            "default_model": "anthropic/claude-sonnet-4",
            "theme": "dark",
        }
