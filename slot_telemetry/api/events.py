import json

from fastapi import APIRouter, Depends, HTTPException, Request, status
from starlette.concurrency import run_in_threadpool

from slot_telemetry.api.deps import get_ingestion_service
from slot_telemetry.core.config import settings
from slot_telemetry.schemas.event import ErrorResponse, TrackResponse
from slot_telemetry.services.ingestion import IngestionService
from slot_telemetry.services.validation import EventRejected, RejectionReason
import structlog

logger = structlog.get_logger()
router = APIRouter(tags=["events"])


@router.post(
    "/track",
    response_model=TrackResponse,
    responses={400: {"model": ErrorResponse}, 413: {"model": ErrorResponse}}
)
async def track_event(
        request: Request,
        service: IngestionService = Depends(get_ingestion_service)
):
    """
    Track a single telemetry event.

    - **eventType**: one of `visit`, `spin`, `freeSpins`, `bigWin`
    - **data**: the event fields; unknown fields are rejected

    The event is accepted once it is stored in memory; persistence is
    best-effort.
    """
    body = await request.body()
    if len(body) > settings.max_body_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Request too large"
        )

    try:
        payload = json.loads(body)
    except ValueError:
        raise EventRejected(RejectionReason.INVALID_REQUEST)

    try:
        await run_in_threadpool(service.ingest, payload)
    except EventRejected as e:
        logger.info("event_rejected", reason=e.reason.value)
        raise
    except Exception as e:
        logger.error("ingestion_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error"
        )

    return TrackResponse(success=True)
