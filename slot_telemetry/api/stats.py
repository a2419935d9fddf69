# GET /stats, /sessions, /spins, /bigwins

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List, Optional

from slot_telemetry.api.deps import get_store
from slot_telemetry.services.analytics import AnalyticsService
from slot_telemetry.services.event_store import EventStore
from slot_telemetry.schemas.analytics import (
    BigWinResponse,
    SessionResponse,
    SpinsPageResponse,
    StatsResponse
)
import structlog

logger = structlog.get_logger()
router = APIRouter(tags=["analytics"])


@router.get("/stats", response_model=StatsResponse)
async def get_stats(store: EventStore = Depends(get_store)):
    """
    Aggregate statistics over everything currently retained.

    Rates and money values are rounded to 2 decimals; rates are 0 when
    there is nothing to divide by.
    """
    try:
        service = AnalyticsService(store.snapshot())
        return service.get_stats()

    except Exception as e:
        logger.error("stats_query_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Server error")


@router.get("/sessions", response_model=List[SessionResponse])
async def get_sessions(
        limit: Optional[int] = Query(default=None, description="Sessions to return (1-200, default 50)"),
        store: EventStore = Depends(get_store)
):
    """
    Most recent sessions, derived from visits and spins.

    - **limit**: clamped to 1-200
    """
    try:
        service = AnalyticsService(store.snapshot())
        result = service.get_sessions(limit)

        logger.info("sessions_query_executed", limit=limit, returned=len(result))
        return result

    except Exception as e:
        logger.error("sessions_query_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Server error")


@router.get("/spins", response_model=SpinsPageResponse)
async def get_spins(
        page: Optional[int] = Query(default=None, description="1-indexed page"),
        limit: Optional[int] = Query(default=None, description="Page size (1-200, default 50)"),
        store: EventStore = Depends(get_store)
):
    """
    Spins, newest first, with pagination metadata.

    - **page**: values below 1 are treated as 1
    - **limit**: clamped to 1-200
    """
    try:
        service = AnalyticsService(store.snapshot())
        return service.get_spins(page, limit)

    except Exception as e:
        logger.error("spins_query_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Server error")


@router.get("/bigwins", response_model=List[BigWinResponse])
async def get_big_wins(
        limit: Optional[int] = Query(default=None, description="Big wins to return (1-200, default 50)"),
        store: EventStore = Depends(get_store)
):
    """Most recent big wins, newest first"""
    try:
        service = AnalyticsService(store.snapshot())
        return service.get_big_wins(limit)

    except Exception as e:
        logger.error("bigwins_query_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Server error")
