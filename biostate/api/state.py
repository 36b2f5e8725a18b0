from datetime import datetime
from typing import Dict, List, Optional
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
import pytz

from biostate.api.schemas import LogEntryIn, RuleSnapshotIn, SafetyLimitIn, limits_to_engine
from biostate.services.dashboard import DashboardService, dashboard_service
from biostate.services.state_cache import state_cache

router = APIRouter()


class DeriveRequest(BaseModel):
    logs: List[LogEntryIn] = []
    snapshot: RuleSnapshotIn = RuleSnapshotIn()
    safety_limits: Optional[Dict[str, SafetyLimitIn]] = None
    now: Optional[datetime] = None
    timezone: Optional[str] = None


class PreviewRequest(BaseModel):
    confirmed_logs: List[LogEntryIn] = []
    pending_logs: List[LogEntryIn] = []
    removed_log_ids: List[str] = []
    snapshot: RuleSnapshotIn = RuleSnapshotIn()
    safety_limits: Optional[Dict[str, SafetyLimitIn]] = None
    now: Optional[datetime] = None
    timezone: Optional[str] = None


def service_for(timezone: Optional[str]) -> DashboardService:
    """Default service, or one bound to a per-request timezone."""
    if timezone is None:
        return dashboard_service
    try:
        pytz.timezone(timezone)
    except pytz.UnknownTimeZoneError:
        raise HTTPException(status_code=400, detail=f"Unknown timezone: {timezone}")
    return DashboardService(cache=state_cache, timezone=timezone)


@router.post("/derive")
async def derive_confirmed_state(request: DeriveRequest):
    """
    Authoritative derivation from confirmed logs.

    Returns warnings, biological state, timeline and safety headroom.
    """
    service = service_for(request.timezone)
    try:
        return service.confirmed_state(
            [entry.to_engine() for entry in request.logs],
            request.snapshot.to_engine(),
            now=request.now,
            safety_limits=limits_to_engine(request.safety_limits),
        )
    except pytz.UnknownTimeZoneError:
        raise HTTPException(status_code=400, detail=f"Unknown timezone: {service.timezone}")


@router.post("/preview")
async def derive_optimistic_state(request: PreviewRequest):
    """
    Speculative derivation: confirmed logs plus pending logs, minus removed ones.

    Uses the same engine as /derive, so the preview matches the confirmed
    state once the pending logs are saved.
    """
    service = service_for(request.timezone)
    try:
        return service.optimistic_state(
            [entry.to_engine() for entry in request.confirmed_logs],
            [entry.to_engine() for entry in request.pending_logs],
            request.snapshot.to_engine(),
            removed_ids=request.removed_log_ids,
            now=request.now,
            safety_limits=limits_to_engine(request.safety_limits),
        )
    except pytz.UnknownTimeZoneError:
        raise HTTPException(status_code=400, detail=f"Unknown timezone: {service.timezone}")
