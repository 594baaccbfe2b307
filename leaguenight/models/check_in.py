from datetime import datetime
from typing import Optional

from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel


class CheckIn(SQLModel, table=True):
    __tablename__ = "check_in"
    __table_args__ = (
        # At most one active check-in per (player, night)
        Index(
            "uq_check_in_active",
            "instance_id",
            "player_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    instance_id: int = Field(foreign_key="league_night_instance.id", index=True)
    player_id: int = Field(foreign_key="player.id", index=True)
    is_active: bool = Field(default=True)
    checked_in_at: datetime = Field(default_factory=datetime.utcnow)
    checked_out_at: Optional[datetime] = Field(default=None)
