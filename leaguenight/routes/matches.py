"""
Match endpoints: on-demand allocation and the player score workflow
(submit → confirm | dispute, or withdraw a submission).
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from leaguenight.services.court_allocator import AllocationResult
from leaguenight.services.engine import LeagueNightEngine, get_engine
from leaguenight.services.match_lifecycle import describe_matches

router = APIRouter()


class ScoreSubmit(BaseModel):
    player_id: int
    team1_score: int
    team2_score: int


class PlayerPayload(BaseModel):
    player_id: int


class MatchRow(BaseModel):
    id: int
    court_number: int
    court_label: str
    status: str
    score_status: str
    partnership1_id: int
    partnership2_id: int
    team1_name: str
    team2_name: str
    team1_player_ids: List[int]
    team2_player_ids: List[int]
    team1_score: Optional[int] = None
    team2_score: Optional[int] = None
    pending_team1_score: Optional[int] = None
    pending_team2_score: Optional[int] = None
    pending_submitted_by_partnership_id: Optional[int] = None
    assigned_by: str
    created_at: datetime
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class AllocationResponse(BaseModel):
    matches: List[MatchRow]
    reason: str
    message: str
    partnerships_waiting: int
    courts_free: int
    courts_in_use: int
    total_courts: int
    next_match_possible: bool


def match_row(engine: LeagueNightEngine, match) -> MatchRow:
    return MatchRow(**describe_matches(engine.repo, [match])[0])


def allocation_response(engine: LeagueNightEngine, result: AllocationResult) -> AllocationResponse:
    return AllocationResponse(
        matches=[MatchRow(**row) for row in describe_matches(engine.repo, result.matches)],
        reason=result.reason,
        message=result.message,
        partnerships_waiting=result.partnerships_waiting,
        courts_free=result.courts_free,
        courts_in_use=result.courts_in_use,
        total_courts=result.total_courts,
        next_match_possible=result.next_match_possible,
    )


@router.get("/nights/{night_id}/matches", response_model=List[MatchRow])
def list_matches(night_id: int, engine: LeagueNightEngine = Depends(get_engine)):
    """All matches for the night, newest first."""
    engine.get_instance(night_id)
    return engine.list_matches(night_id)


@router.post("/nights/{night_id}/matches/create-now", response_model=AllocationResponse)
def create_matches_now(night_id: int, engine: LeagueNightEngine = Depends(get_engine)):
    """Run the allocator now, regardless of the auto-assignment flag."""
    engine.get_instance(night_id)
    return allocation_response(engine, engine.create_matches_now(night_id))


@router.post("/nights/{night_id}/matches/{match_id}/score", response_model=MatchRow)
def submit_score(
    night_id: int,
    match_id: int,
    payload: ScoreSubmit,
    engine: LeagueNightEngine = Depends(get_engine),
):
    match = engine.submit_score(night_id, match_id, payload.player_id, payload.team1_score, payload.team2_score)
    return match_row(engine, match)


@router.post("/nights/{night_id}/matches/{match_id}/confirm", response_model=MatchRow)
def confirm_score(
    night_id: int,
    match_id: int,
    payload: PlayerPayload,
    engine: LeagueNightEngine = Depends(get_engine),
):
    return match_row(engine, engine.confirm_score(night_id, match_id, payload.player_id))


@router.post("/nights/{night_id}/matches/{match_id}/dispute", response_model=MatchRow)
def dispute_score(
    night_id: int,
    match_id: int,
    payload: PlayerPayload,
    engine: LeagueNightEngine = Depends(get_engine),
):
    return match_row(engine, engine.dispute_score(night_id, match_id, payload.player_id))


@router.post("/nights/{night_id}/matches/{match_id}/cancel-submission", response_model=MatchRow)
def cancel_submission(
    night_id: int,
    match_id: int,
    payload: PlayerPayload,
    engine: LeagueNightEngine = Depends(get_engine),
):
    return match_row(engine, engine.cancel_submission(night_id, match_id, payload.player_id))
