"""
Scan Orchestrator

Drives one shelf photo through the pipeline:

    pending -> analyzing -> enriching -> complete
                (any stage) -> error

Replays:
- rescan: run the vision step again on the stored image, possibly with a
  different model, replacing the stored vision output and items
- re-enrich: skip the vision step and resolve the stored vision output again
- item edit: resolve one corrected item and update it in place

Each `start_*` method validates its inputs up front, then returns a
ScanHandle holding the background task and the event channel it publishes
to. Consumers that stop listening do not stop the task; `cancel()` does.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from shelfscan.identification.resolver import MultiSourceResolver
from shelfscan.identification.types import EnrichedItem, IdentifiedItem, ScanStatus
from shelfscan.library.plex import LibraryError, PlexClient, cross_reference
from shelfscan.pipeline import events as ev
from shelfscan.pipeline.events import EventChannel
from shelfscan.storage.scan_repository import ScanRepository, StoredItem, StoredScan
from shelfscan.vision.client import VisionClient, get_model
from shelfscan.vision.parser import VisionResponseError, parse_vision_response
from shelfscan.vision.preprocessing import PreprocessConfig


class ScanError(Exception):
    """Base class for pipeline errors surfaced to callers."""


class ServiceNotConfiguredError(ScanError):
    def __init__(self, service: str):
        self.service = service
        super().__init__(f"{service} is not configured")


class InvalidScanRequestError(ScanError):
    pass


class ScanNotFoundError(ScanError):
    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}")


class ReenrichUnavailableError(ScanError):
    def __init__(self, scan_id: str):
        super().__init__(f"No raw vision response stored for scan {scan_id}, cannot re-enrich")


@dataclass
class ScanHandle:
    """Background pipeline run plus its event stream."""

    task: asyncio.Task
    events: EventChannel

    def cancel(self) -> None:
        self.task.cancel()

    async def result(self) -> Optional[StoredScan]:
        """Final scan snapshot, or None if the run failed or was cancelled."""
        try:
            return await self.task
        except asyncio.CancelledError:
            return None


class ScanOrchestrator:
    """
    Top-level scan state machine.

    Usage:
        orchestrator = ScanOrchestrator(repository, vision=vision, resolver=resolver)
        handle = await orchestrator.start_scan(image_bytes, "image/jpeg", "openai/gpt-4o")
        async for event in handle.events:
            ...
    """

    def __init__(
        self,
        repository: ScanRepository,
        vision: Optional[VisionClient] = None,
        resolver: Optional[MultiSourceResolver] = None,
        library: Optional[PlexClient] = None,
        preprocess: Optional[PreprocessConfig] = None,
    ):
        self.repository = repository
        self.vision = vision
        self.resolver = resolver
        self.library = library
        self.preprocess = preprocess or PreprocessConfig()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _require_vision(self) -> VisionClient:
        if self.vision is None:
            raise ServiceNotConfiguredError("OpenRouter")
        return self.vision

    def _require_resolver(self) -> MultiSourceResolver:
        if self.resolver is None:
            raise ServiceNotConfiguredError("TMDB")
        return self.resolver

    def _validate_scan_request(self, image: bytes, model_id: str) -> None:
        self._require_vision()
        self._require_resolver()
        if not image:
            raise InvalidScanRequestError("Image is empty")
        if len(image) > self.preprocess.max_file_size:
            raise InvalidScanRequestError(
                f"Image exceeds {self.preprocess.max_file_size // (1024 * 1024)}MB limit"
            )
        if get_model(model_id) is None:
            raise InvalidScanRequestError(f"Invalid model ID: {model_id}")

    # ------------------------------------------------------------------
    # Background runs
    # ------------------------------------------------------------------

    def _launch(self, coro_factory) -> ScanHandle:
        channel = EventChannel()

        async def runner() -> Optional[StoredScan]:
            try:
                return await coro_factory(channel)
            except ScanError as e:
                logger.warning(f"Scan run failed: {e}")
                return None
            except Exception as e:
                logger.exception(f"Scan run crashed: {e}")
                return None
            finally:
                channel.close()

        return ScanHandle(task=asyncio.create_task(runner()), events=channel)

    async def start_scan(self, image: bytes, mime_type: str, model_id: str) -> ScanHandle:
        self._validate_scan_request(image, model_id)
        return self._launch(
            lambda channel: self.run_full_scan(image, mime_type, model_id, channel)
        )

    async def start_rescan(self, scan_id: str, model_id: Optional[str] = None) -> ScanHandle:
        scan, image = await self._load_scan_image(scan_id)
        model_id = model_id or scan.model_id
        self._validate_scan_request(image, model_id)
        return self._launch(lambda channel: self.rescan(scan_id, model_id, channel))

    async def start_reenrich(self, scan_id: str) -> ScanHandle:
        self._require_resolver()
        scan = await self.repository.get_scan(scan_id)
        if scan is None:
            raise ScanNotFoundError("Scan", scan_id)
        if not scan.raw_response:
            raise ReenrichUnavailableError(scan_id)
        return self._launch(lambda channel: self.reenrich(scan_id, channel))

    # ------------------------------------------------------------------
    # Pipeline runs
    # ------------------------------------------------------------------

    async def run_full_scan(
        self,
        image: bytes,
        mime_type: str,
        model_id: str,
        events: Optional[EventChannel] = None,
    ) -> StoredScan:
        """Store the image, create the scan, then analyze and enrich it."""
        events = events or EventChannel()
        self._validate_scan_request(image, model_id)

        image_id = await self.repository.store_image(image, mime_type)
        scan = await self.repository.create_scan(image_id, model_id)
        events.publish(ev.CREATED, scanId=scan.id)
        logger.info(f"Scan {scan.id} created with model {model_id}")

        return await self._analyze_and_enrich(scan.id, image, model_id, events)

    async def rescan(
        self,
        scan_id: str,
        model_id: Optional[str] = None,
        events: Optional[EventChannel] = None,
    ) -> StoredScan:
        """Run the vision step again on the scan's stored image."""
        events = events or EventChannel()
        scan, image = await self._load_scan_image(scan_id)
        model_id = model_id or scan.model_id
        self._validate_scan_request(image, model_id)

        await self.repository.update_scan_model(scan_id, model_id)
        await self._set_status(scan_id, ScanStatus.PENDING, events)
        events.publish(ev.CREATED, scanId=scan_id)
        logger.info(f"Rescanning {scan_id} with model {model_id}")

        return await self._analyze_and_enrich(scan_id, image, model_id, events)

    async def reenrich(self, scan_id: str, events: Optional[EventChannel] = None) -> StoredScan:
        """Resolve the stored vision output again without a new vision call."""
        events = events or EventChannel()
        self._require_resolver()
        scan = await self.repository.get_scan(scan_id)
        if scan is None:
            raise ScanNotFoundError("Scan", scan_id)
        if not scan.raw_response:
            raise ReenrichUnavailableError(scan_id)

        try:
            try:
                items = parse_vision_response(scan.raw_response)
            except VisionResponseError as e:
                raise ScanError(f"Stored raw response is invalid: {e}") from e

            await self.repository.delete_items(scan_id)
            await self._enrich_and_save(scan_id, items, events)
            return await self._complete(scan_id, events)
        except asyncio.CancelledError:
            await self._fail(scan_id, "Scan cancelled", events)
            raise
        except Exception as e:
            await self._fail(scan_id, str(e), events)
            raise

    async def edit_item(
        self,
        scan_id: str,
        item_id: str,
        title: str,
        creator: Optional[str] = None,
    ) -> StoredItem:
        """Resolve a user-corrected item and update it in place."""
        resolver = self._require_resolver()
        if not title or not title.strip():
            raise InvalidScanRequestError("Title is required")

        stored = await self.repository.get_item(scan_id, item_id)
        if stored is None:
            raise ScanNotFoundError("Item", item_id)

        corrected = IdentifiedItem(
            title=title,
            creator=creator if creator is not None else stored.enriched.creator,
            kind=stored.enriched.kind,
            year=stored.raw_year,
        )
        logger.info(f"Re-resolving item {item_id} as '{title}'")

        enriched = (await resolver.resolve_all([corrected]))[0]
        await self._cross_reference([enriched])

        updated = await self.repository.update_item(
            item_id,
            enriched,
            raw_title=title,
            raw_creator=creator if creator is not None else stored.raw_creator,
        )
        if updated is None:
            raise ScanNotFoundError("Item", item_id)
        return updated

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _load_scan_image(self, scan_id: str):
        scan = await self.repository.get_scan(scan_id)
        if scan is None:
            raise ScanNotFoundError("Scan", scan_id)
        image = await self.repository.get_image(scan.image_id)
        if image is None:
            raise ScanNotFoundError("Image", scan.image_id)
        return scan, image.data

    async def _analyze_and_enrich(
        self,
        scan_id: str,
        image: bytes,
        model_id: str,
        events: EventChannel,
    ) -> StoredScan:
        vision = self._require_vision()
        try:
            await self._set_status(scan_id, ScanStatus.ANALYZING, events)
            result = await vision.identify(image, model_id)

            await self.repository.set_raw_response(scan_id, result.raw_content)
            await self.repository.record_usage(
                scan_id,
                result.model,
                result.input_tokens,
                result.output_tokens,
                result.cost_usd,
            )

            await self.repository.delete_items(scan_id)
            await self._enrich_and_save(scan_id, result.items, events)
            return await self._complete(scan_id, events)
        except asyncio.CancelledError:
            await self._fail(scan_id, "Scan cancelled", events)
            raise
        except Exception as e:
            await self._fail(scan_id, str(e), events)
            raise

    async def _enrich_and_save(
        self,
        scan_id: str,
        items: list[IdentifiedItem],
        events: EventChannel,
    ) -> list[EnrichedItem]:
        resolver = self._require_resolver()
        await self._set_status(scan_id, ScanStatus.ENRICHING, events)

        enriched = await resolver.resolve_all(items)
        await self._cross_reference(enriched)

        await self.repository.insert_items(scan_id, enriched, items)
        logger.info(f"Scan {scan_id}: saved {len(enriched)} enriched items")
        return enriched

    async def _cross_reference(self, enriched: list[EnrichedItem]) -> None:
        """Fetch the library once and match every item against it."""
        if self.library is None:
            return
        try:
            library_items = await self.library.list_all_items()
        except LibraryError as e:
            logger.warning(f"Plex cross-reference failed: {e}")
            return
        cross_reference(enriched, library_items)

    async def _set_status(self, scan_id: str, status: ScanStatus, events: EventChannel) -> None:
        await self.repository.update_scan_status(scan_id, status)
        events.publish(ev.STATUS, status=status.value)

    async def _complete(self, scan_id: str, events: EventChannel) -> StoredScan:
        await self._set_status(scan_id, ScanStatus.COMPLETE, events)
        detail = await self.repository.get_scan(scan_id)
        events.publish(ev.COMPLETE, scan=detail.to_dict())
        return detail

    async def _fail(self, scan_id: str, message: str, events: EventChannel) -> None:
        logger.error(f"Scan {scan_id} failed: {message}")
        try:
            await self._set_status(scan_id, ScanStatus.ERROR, events)
        except Exception as e:
            logger.error(f"Could not mark scan {scan_id} as failed: {e}")
        events.publish(ev.ERROR, message=message)
