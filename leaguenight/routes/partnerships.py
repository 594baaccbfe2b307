"""Partnership request/accept/reject endpoints for checked-in players."""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from leaguenight.services.engine import LeagueNightEngine, get_engine

router = APIRouter()


class PartnershipRequestCreate(BaseModel):
    player_id: int
    requested_player_id: int


class PlayerPayload(BaseModel):
    player_id: int


class PartnershipRequestResponse(BaseModel):
    id: int
    instance_id: int
    requester_id: int
    requested_id: int
    status: str
    created_at: datetime
    responded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PartnershipResponse(BaseModel):
    id: int
    instance_id: int
    player1_id: int
    player2_id: int
    is_active: bool
    confirmed_at: datetime
    deactivated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PlayerRequestsResponse(BaseModel):
    sent: List[PartnershipRequestResponse]
    received: List[PartnershipRequestResponse]
    partnership: Optional[PartnershipResponse] = None


@router.get("/nights/{night_id}/partnership-requests", response_model=PlayerRequestsResponse)
def list_requests(
    night_id: int,
    player_id: int = Query(...),
    engine: LeagueNightEngine = Depends(get_engine),
):
    engine.get_instance(night_id)
    return engine.list_partnership_requests(night_id, player_id)


@router.post(
    "/nights/{night_id}/partnership-requests",
    response_model=PartnershipRequestResponse,
    status_code=201,
)
def send_request(
    night_id: int,
    payload: PartnershipRequestCreate,
    engine: LeagueNightEngine = Depends(get_engine),
):
    return engine.send_partnership_request(night_id, payload.player_id, payload.requested_player_id)


@router.post(
    "/nights/{night_id}/partnership-requests/{request_id}/accept",
    response_model=PartnershipResponse,
)
def accept_request(
    night_id: int,
    request_id: int,
    payload: PlayerPayload,
    engine: LeagueNightEngine = Depends(get_engine),
):
    return engine.accept_partnership_request(night_id, request_id, payload.player_id)


@router.post(
    "/nights/{night_id}/partnership-requests/{request_id}/reject",
    response_model=PartnershipRequestResponse,
)
def reject_request(
    night_id: int,
    request_id: int,
    payload: PlayerPayload,
    engine: LeagueNightEngine = Depends(get_engine),
):
    return engine.reject_partnership_request(night_id, request_id, payload.player_id)


@router.delete("/nights/{night_id}/partnership", response_model=PartnershipResponse)
def remove_partnership(
    night_id: int,
    player_id: int = Query(...),
    engine: LeagueNightEngine = Depends(get_engine),
):
    """Leave your current partnership; both players return to the pool."""
    return engine.remove_partnership(night_id, player_id)
