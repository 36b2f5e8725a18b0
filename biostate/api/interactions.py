from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
import pytz

from biostate.api.schemas import InteractionRuleIn, LogEntryIn, RuleSnapshotIn
from biostate.api.state import service_for
from biostate.engine.matchers import match_interactions
from biostate.engine.state import blocking_zone

router = APIRouter()


class InteractionCheckRequest(BaseModel):
    supplement_ids: List[str]
    interaction_rules: List[InteractionRuleIn] = []


class TimingSafetyRequest(BaseModel):
    supplement_id: str
    logs: List[LogEntryIn] = []
    snapshot: RuleSnapshotIn = RuleSnapshotIn()
    now: Optional[datetime] = None
    timezone: Optional[str] = None


@router.post("/check")
async def check_interactions(request: InteractionCheckRequest):
    """
    Check for interactions between a set of supplements.

    A rule applies only when both of its supplements are in the set.
    """
    return match_interactions(
        set(request.supplement_ids),
        [rule.to_engine() for rule in request.interaction_rules]
    )


@router.post("/timing-safety")
async def check_timing_safety(request: TimingSafetyRequest):
    """
    Check whether a supplement can be taken now given today's logs.

    Returns the exclusion zone blocking it, if any.
    """
    service = service_for(request.timezone)
    try:
        state = service.confirmed_state(
            [entry.to_engine() for entry in request.logs],
            request.snapshot.to_engine(),
            now=request.now,
        )
    except pytz.UnknownTimeZoneError:
        raise HTTPException(status_code=400, detail=f"Unknown timezone: {service.timezone}")
    zone = blocking_zone(state.biological_state, request.supplement_id)

    return {
        "supplement_id": request.supplement_id,
        "safe": zone is None,
        "zone": zone,
    }
