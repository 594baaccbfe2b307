from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel

ROLE_MEMBER = "member"
ROLE_ORGANIZER = "organizer"
ROLE_ADMIN = "admin"

PRIVILEGED_ROLES = (ROLE_ADMIN, ROLE_ORGANIZER)


class Player(SQLModel, table=True):
    """League member profile, owned by the account system and read here."""

    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str
    last_name: str = Field(default="")
    skill_level: Optional[str] = Field(default=None)  # "Beginner" | "Intermediate" | "Advanced" | "3.5"
    cell_phone: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class LeagueMembership(SQLModel, table=True):
    __tablename__ = "league_membership"
    __table_args__ = (SAUniqueConstraint("league_id", "player_id", name="uq_league_member"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: int = Field(index=True)
    player_id: int = Field(foreign_key="player.id", index=True)
    role: str = Field(default=ROLE_MEMBER)  # member | organizer | admin
