from datetime import datetime
from typing import Optional, Tuple

from sqlmodel import Field, SQLModel

REQUEST_PENDING = "pending"
REQUEST_ACCEPTED = "accepted"
REQUEST_REJECTED = "rejected"


class PartnershipRequest(SQLModel, table=True):
    __tablename__ = "partnership_request"

    id: Optional[int] = Field(default=None, primary_key=True)
    instance_id: int = Field(foreign_key="league_night_instance.id", index=True)
    requester_id: int = Field(foreign_key="player.id", index=True)
    requested_id: int = Field(foreign_key="player.id", index=True)
    status: str = Field(default=REQUEST_PENDING)  # pending | accepted | rejected
    created_at: datetime = Field(default_factory=datetime.utcnow)
    responded_at: Optional[datetime] = Field(default=None)

    def involves(self, player_id: int) -> bool:
        return player_id in (self.requester_id, self.requested_id)


class ConfirmedPartnership(SQLModel, table=True):
    __tablename__ = "confirmed_partnership"

    id: Optional[int] = Field(default=None, primary_key=True)
    instance_id: int = Field(foreign_key="league_night_instance.id", index=True)
    player1_id: int = Field(foreign_key="player.id", index=True)
    player2_id: int = Field(foreign_key="player.id", index=True)
    is_active: bool = Field(default=True)
    confirmed_at: datetime = Field(default_factory=datetime.utcnow)
    deactivated_at: Optional[datetime] = Field(default=None)

    @property
    def player_ids(self) -> Tuple[int, int]:
        return (self.player1_id, self.player2_id)
