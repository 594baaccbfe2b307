"""
League night endpoints: instance lifecycle, check-ins and read-only views
(queue, standings, event journal). Actor identity comes from the payload or
query string; authentication happens upstream.
"""
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from leaguenight.services.engine import LeagueNightEngine, get_engine

router = APIRouter()


class NightCreate(BaseModel):
    on_date: Optional[date] = None


class ActorPayload(BaseModel):
    actor_id: int


class PlayerPayload(BaseModel):
    player_id: int


class NightResponse(BaseModel):
    id: int
    league_id: int
    league_day_id: Optional[int] = None
    date: date
    start_time: time
    status: str
    courts: List[Dict[str, Any]]
    auto_assignment_enabled: bool
    auto_started_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EndNightResponse(BaseModel):
    night: NightResponse
    active_matches_remaining: int


class CheckInRow(BaseModel):
    player_id: int
    name: str
    skill_level: str
    checked_in_at: datetime
    has_partner: bool
    partner_id: Optional[int] = None


class CheckInResponse(BaseModel):
    id: int
    instance_id: int
    player_id: int
    is_active: bool
    checked_in_at: datetime
    checked_out_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CheckOutResponse(BaseModel):
    check_in: CheckInResponse
    dissolved_partnership_id: Optional[int] = None
    rejected_request_ids: List[int] = []
    flagged_match_ids: List[int] = []


def check_out_response(result) -> CheckOutResponse:
    return CheckOutResponse(
        check_in=CheckInResponse.model_validate(result.check_in),
        dissolved_partnership_id=result.dissolved_partnership.id if result.dissolved_partnership else None,
        rejected_request_ids=result.rejected_request_ids,
        flagged_match_ids=result.flagged_match_ids,
    )


# ── Nights ──────────────────────────────────────────────────────────────


@router.post("/league-days/{league_day_id}/nights", response_model=NightResponse)
def get_or_create_night(
    league_day_id: int,
    payload: Optional[NightCreate] = None,
    engine: LeagueNightEngine = Depends(get_engine),
):
    """Return tonight's (or the given date's) instance, creating it on first request."""
    on_date = payload.on_date if payload else None
    return engine.get_or_create_instance(league_day_id, on_date=on_date)


@router.get("/nights/{night_id}", response_model=NightResponse)
def get_night(night_id: int, engine: LeagueNightEngine = Depends(get_engine)):
    return engine.get_instance(night_id)


@router.post("/nights/{night_id}/start", response_model=NightResponse)
def start_night(night_id: int, payload: ActorPayload, engine: LeagueNightEngine = Depends(get_engine)):
    return engine.start_night(night_id, payload.actor_id)


@router.post("/nights/{night_id}/end", response_model=EndNightResponse)
def end_night(night_id: int, payload: ActorPayload, engine: LeagueNightEngine = Depends(get_engine)):
    result = engine.end_night(night_id, payload.actor_id)
    return EndNightResponse(
        night=NightResponse.model_validate(result["instance"]),
        active_matches_remaining=result["active_matches_remaining"],
    )


# ── Check-ins ───────────────────────────────────────────────────────────


@router.get("/nights/{night_id}/checkins", response_model=List[CheckInRow])
def list_checkins(night_id: int, engine: LeagueNightEngine = Depends(get_engine)):
    engine.get_instance(night_id)
    return engine.list_checked_in(night_id)


@router.post("/nights/{night_id}/checkins", response_model=CheckInResponse, status_code=201)
def check_in(night_id: int, payload: PlayerPayload, engine: LeagueNightEngine = Depends(get_engine)):
    engine.get_instance(night_id)
    return engine.check_in(night_id, payload.player_id)


@router.delete("/nights/{night_id}/checkins", response_model=CheckOutResponse)
def check_out(
    night_id: int,
    player_id: int = Query(...),
    engine: LeagueNightEngine = Depends(get_engine),
):
    return check_out_response(engine.check_out(night_id, player_id))


# ── Read views ──────────────────────────────────────────────────────────


@router.get("/nights/{night_id}/queue")
def get_queue(night_id: int, engine: LeagueNightEngine = Depends(get_engine)):
    """Waiting partnerships in fairness order, matches on court, court usage."""
    return engine.get_queue_snapshot(night_id)


@router.get("/nights/{night_id}/standings")
def get_standings(night_id: int, engine: LeagueNightEngine = Depends(get_engine)):
    engine.get_instance(night_id)
    return engine.night_standings(night_id)


@router.get("/nights/{night_id}/events")
def get_events(
    night_id: int,
    since: int = Query(0, ge=0),
    engine: LeagueNightEngine = Depends(get_engine),
):
    """Poll for changes: events after ``since`` from the in-memory journal."""
    events = engine.recent_events(night_id, since)
    return {"events": events, "last_id": events[-1]["id"] if events else since}
