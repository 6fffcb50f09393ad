"""
Scan API Routes

Endpoints for uploading shelf photos and managing scans. Pipeline runs
stream their progress as server-sent events.
"""

from typing import AsyncGenerator, Optional

from fastapi import APIRouter, Body, Depends, File, Form, Query, Response, UploadFile, status
from fastapi.responses import StreamingResponse
from loguru import logger

from shelfscan.api.dependencies import (
    ServiceContainer,
    get_orchestrator,
    get_repository,
    get_service_container,
)
from shelfscan.api.middleware.error_handler import NotFoundError, ValidationError
from shelfscan.api.schemas import (
    DeleteResponse,
    ErrorResponse,
    ItemEditRequest,
    RescanRequest,
    ScanListResponse,
    ScanSummaryResponse,
)
from shelfscan.pipeline.orchestrator import ScanHandle


router = APIRouter(prefix="/scans", tags=["scans"])


SUPPORTED_FORMATS = {"image/jpeg", "image/png", "image/webp", "image/heic", "image/gif"}

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def event_stream(handle: ScanHandle) -> StreamingResponse:
    """
    Relay a pipeline run's events as SSE.

    The stream ends after the terminal event. A client that disconnects
    stops the relay only; the run itself keeps going.
    """

    async def generate() -> AsyncGenerator[str, None]:
        async for event in handle.events:
            yield event.to_sse()

    return StreamingResponse(generate(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.post(
    "",
    responses={
        400: {"model": ErrorResponse, "description": "Invalid image or model"},
        503: {"model": ErrorResponse, "description": "Service not configured"},
    },
)
async def create_scan(
    image: UploadFile = File(..., description="Shelf photo"),
    model_id: Optional[str] = Form(None, alias="modelId"),
    container: ServiceContainer = Depends(get_service_container),
):
    """Upload a shelf photo and stream the scan's progress."""
    content_type = image.content_type or ""
    if content_type not in SUPPORTED_FORMATS:
        raise ValidationError(
            f"Unsupported image type: {content_type}",
            detail=f"Supported: {', '.join(sorted(SUPPORTED_FORMATS))}",
        )

    data = await image.read()
    model_id = model_id or container.settings.default_model_id
    logger.info(f"New scan upload: {image.filename} ({len(data)} bytes) with {model_id}")

    handle = await container.orchestrator.start_scan(data, content_type, model_id)
    return event_stream(handle)


@router.get("", response_model=ScanListResponse)
async def list_scans(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    repo=Depends(get_repository),
):
    """List scans newest first, with item counts and vision cost."""
    summaries = await repo.list_scans(limit=limit, offset=offset)
    return ScanListResponse(
        scans=[ScanSummaryResponse.model_validate(s) for s in summaries],
        limit=limit,
        offset=offset,
    )


@router.get(
    "/{scan_id}",
    responses={404: {"model": ErrorResponse, "description": "Scan not found"}},
)
async def get_scan(scan_id: str, repo=Depends(get_repository)):
    """Scan detail with its enriched items in shelf order."""
    scan = await repo.get_scan(scan_id)
    if scan is None:
        raise NotFoundError("Scan", scan_id)
    return scan.to_dict()


@router.delete(
    "/{scan_id}",
    response_model=DeleteResponse,
    responses={404: {"model": ErrorResponse, "description": "Scan not found"}},
)
async def delete_scan(scan_id: str, repo=Depends(get_repository)):
    """Delete a scan together with its items and usage records."""
    if not await repo.delete_scan(scan_id):
        raise NotFoundError("Scan", scan_id)
    logger.info(f"Deleted scan {scan_id}")
    return DeleteResponse(deleted=True, id=scan_id)


@router.get(
    "/{scan_id}/image",
    responses={
        200: {"content": {"image/*": {}}},
        404: {"model": ErrorResponse, "description": "Scan or image not found"},
    },
)
async def get_scan_image(scan_id: str, repo=Depends(get_repository)):
    """The originally uploaded photo."""
    scan = await repo.get_scan(scan_id)
    if scan is None:
        raise NotFoundError("Scan", scan_id)
    image = await repo.get_image(scan.image_id)
    if image is None:
        raise NotFoundError("Image", scan.image_id)
    return Response(
        content=image.data,
        media_type=image.mime_type,
        headers={"Cache-Control": "private, max-age=86400"},
    )


@router.post(
    "/{scan_id}/rescan",
    responses={
        404: {"model": ErrorResponse, "description": "Scan not found"},
        503: {"model": ErrorResponse, "description": "Service not configured"},
    },
)
async def rescan(
    scan_id: str,
    request: Optional[RescanRequest] = Body(None),
    orchestrator=Depends(get_orchestrator),
):
    """Run the vision step again, optionally with another model."""
    model_id = request.model_id if request else None
    handle = await orchestrator.start_rescan(scan_id, model_id)
    return event_stream(handle)


@router.post(
    "/{scan_id}/re-enrich",
    responses={
        404: {"model": ErrorResponse, "description": "Scan not found"},
        409: {"model": ErrorResponse, "description": "No stored vision response"},
    },
)
async def reenrich(scan_id: str, orchestrator=Depends(get_orchestrator)):
    """Resolve the stored vision output again without a new vision call."""
    handle = await orchestrator.start_reenrich(scan_id)
    return event_stream(handle)


@router.put(
    "/{scan_id}/items/{item_id}",
    responses={
        404: {"model": ErrorResponse, "description": "Item not found"},
    },
    status_code=status.HTTP_200_OK,
)
async def edit_item(
    scan_id: str,
    item_id: str,
    request: ItemEditRequest,
    orchestrator=Depends(get_orchestrator),
):
    """Correct an item's title and re-resolve it."""
    item = await orchestrator.edit_item(scan_id, item_id, request.title, request.creator)
    return item.to_dict()
