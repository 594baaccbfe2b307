"""
Organizer console endpoints. Every call names the acting organizer
(``actor_id``); the engine verifies the role before doing anything.
"""
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from leaguenight.routes.league_nights import CheckInResponse, CheckOutResponse, NightResponse, check_out_response
from leaguenight.routes.matches import AllocationResponse, MatchRow, allocation_response, match_row
from leaguenight.routes.partnerships import PartnershipResponse
from leaguenight.services.engine import LeagueNightEngine, get_engine

router = APIRouter()


class AssignMatch(BaseModel):
    actor_id: int
    partnership1_id: int
    partnership2_id: int
    court_number: int


class ScoreOverride(BaseModel):
    actor_id: int
    team1_score: Optional[int] = None
    team2_score: Optional[int] = None
    # Desk entry, e.g. "15-13" (team1 first)
    score: Optional[Union[str, dict]] = None


class ActorPayload(BaseModel):
    actor_id: int


class AdminCheckIn(BaseModel):
    actor_id: int
    player_id: int


class AdminPartnershipCreate(BaseModel):
    actor_id: int
    player1_id: int
    player2_id: int


class CourtsUpdate(BaseModel):
    actor_id: int
    court_labels: List[str]


class AutoAssignmentUpdate(BaseModel):
    actor_id: int
    enabled: bool


class AutoAssignmentResponse(BaseModel):
    night: NightResponse
    allocation: Optional[AllocationResponse] = None


@router.post("/admin/nights/{night_id}/matches", response_model=MatchRow, status_code=201)
def assign_match(night_id: int, payload: AssignMatch, engine: LeagueNightEngine = Depends(get_engine)):
    match = engine.admin.assign_match(
        night_id,
        payload.actor_id,
        payload.partnership1_id,
        payload.partnership2_id,
        payload.court_number,
    )
    return match_row(engine, match)


@router.post("/admin/nights/{night_id}/matches/{match_id}/override", response_model=MatchRow)
def override_score(
    night_id: int,
    match_id: int,
    payload: ScoreOverride,
    engine: LeagueNightEngine = Depends(get_engine),
):
    match = engine.admin.override_score(
        night_id,
        payload.actor_id,
        match_id,
        team1_score=payload.team1_score,
        team2_score=payload.team2_score,
        score=payload.score,
    )
    return match_row(engine, match)


@router.post("/admin/nights/{night_id}/matches/{match_id}/cancel", response_model=MatchRow)
def cancel_match(
    night_id: int,
    match_id: int,
    payload: ActorPayload,
    engine: LeagueNightEngine = Depends(get_engine),
):
    return match_row(engine, engine.admin.cancel_match(night_id, payload.actor_id, match_id))


@router.post("/admin/nights/{night_id}/checkins", response_model=CheckInResponse, status_code=201)
def admin_check_in(night_id: int, payload: AdminCheckIn, engine: LeagueNightEngine = Depends(get_engine)):
    return engine.admin.check_in(night_id, payload.actor_id, payload.player_id)


@router.delete("/admin/nights/{night_id}/checkins", response_model=CheckOutResponse)
def admin_check_out(
    night_id: int,
    actor_id: int = Query(...),
    player_id: int = Query(...),
    engine: LeagueNightEngine = Depends(get_engine),
):
    return check_out_response(engine.admin.check_out(night_id, actor_id, player_id))


@router.post("/admin/nights/{night_id}/partnerships", response_model=PartnershipResponse, status_code=201)
def admin_create_partnership(
    night_id: int,
    payload: AdminPartnershipCreate,
    engine: LeagueNightEngine = Depends(get_engine),
):
    return engine.admin.create_partnership(night_id, payload.actor_id, payload.player1_id, payload.player2_id)


@router.delete("/admin/nights/{night_id}/partnerships", response_model=PartnershipResponse)
def admin_remove_partnership(
    night_id: int,
    actor_id: int = Query(...),
    partnership_id: Optional[int] = Query(None),
    player_id: Optional[int] = Query(None),
    engine: LeagueNightEngine = Depends(get_engine),
):
    return engine.admin.remove_partnership(night_id, actor_id, partnership_id=partnership_id, player_id=player_id)


@router.put("/admin/nights/{night_id}/courts", response_model=NightResponse)
def update_courts(night_id: int, payload: CourtsUpdate, engine: LeagueNightEngine = Depends(get_engine)):
    return engine.admin.update_courts(night_id, payload.actor_id, payload.court_labels)


@router.put("/admin/nights/{night_id}/auto-assignment", response_model=AutoAssignmentResponse)
def set_auto_assignment(
    night_id: int,
    payload: AutoAssignmentUpdate,
    engine: LeagueNightEngine = Depends(get_engine),
):
    """Turn auto-assignment on or off; turning it on allocates immediately."""
    result = engine.admin.toggle_auto_assignment(night_id, payload.actor_id, payload.enabled)
    allocation = result["allocation"]
    return AutoAssignmentResponse(
        night=NightResponse.model_validate(result["instance"]),
        allocation=allocation_response(engine, allocation) if allocation else None,
    )
