from datetime import date, datetime, time
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, SQLModel

NIGHT_SCHEDULED = "scheduled"
NIGHT_ACTIVE = "active"
NIGHT_COMPLETED = "completed"


class LeagueDay(SQLModel, table=True):
    """Recurring weekly template a league night is materialised from."""

    __tablename__ = "league_day"

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: int = Field(index=True)
    day_of_week: int  # ISO weekday, 1=Monday .. 7=Sunday
    start_time: time
    court_labels: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))


class LeagueNightInstance(SQLModel, table=True):
    __tablename__ = "league_night_instance"
    __table_args__ = (SAUniqueConstraint("league_id", "date", name="uq_league_night_date"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    league_id: int = Field(index=True)
    league_day_id: Optional[int] = Field(default=None, foreign_key="league_day.id")
    date: date
    start_time: time
    status: str = Field(default=NIGHT_SCHEDULED)  # scheduled | active | completed

    # Ordered [{"number": 1, "label": "North"}, ...]; numbers never reused
    courts: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    auto_assignment_enabled: bool = Field(default=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    auto_started_at: Optional[datetime] = Field(default=None)
    started_at: Optional[datetime] = Field(default=None)
    ended_at: Optional[datetime] = Field(default=None)

    @property
    def is_active(self) -> bool:
        return self.status == NIGHT_ACTIVE

    @property
    def is_completed(self) -> bool:
        return self.status == NIGHT_COMPLETED
