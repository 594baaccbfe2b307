from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import CheckConstraint, Index, text
from sqlmodel import Field, SQLModel

MATCH_ACTIVE = "active"
MATCH_COMPLETED = "completed"
MATCH_CANCELLED = "cancelled"

SCORE_NONE = "none"
SCORE_PENDING = "pending"
SCORE_CONFIRMED = "confirmed"
SCORE_DISPUTED = "disputed"


class Match(SQLModel, table=True):
    __tablename__ = "match"
    __table_args__ = (
        CheckConstraint("partnership1_id <> partnership2_id", name="ck_match_distinct_partnerships"),
        # A court hosts at most one active match per night
        Index(
            "uq_match_active_court",
            "instance_id",
            "court_number",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    instance_id: int = Field(foreign_key="league_night_instance.id", index=True)
    partnership1_id: int = Field(foreign_key="confirmed_partnership.id", index=True)
    partnership2_id: int = Field(foreign_key="confirmed_partnership.id", index=True)
    court_number: int
    court_label: str

    status: str = Field(default=MATCH_ACTIVE)  # active | completed | cancelled
    team1_score: Optional[int] = Field(default=None)
    team2_score: Optional[int] = Field(default=None)

    # Submission awaiting the opposing partnership
    pending_team1_score: Optional[int] = Field(default=None)
    pending_team2_score: Optional[int] = Field(default=None)
    pending_submitted_by_partnership_id: Optional[int] = Field(default=None)
    score_status: str = Field(default=SCORE_NONE)  # none | pending | confirmed | disputed

    assigned_by: str = Field(default="auto")  # auto | admin
    created_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = Field(default=None)
    cancelled_at: Optional[datetime] = Field(default=None)

    @property
    def partnership_ids(self) -> Tuple[int, int]:
        return (self.partnership1_id, self.partnership2_id)

    def opponent_of(self, partnership_id: int) -> Optional[int]:
        if partnership_id == self.partnership1_id:
            return self.partnership2_id
        if partnership_id == self.partnership2_id:
            return self.partnership1_id
        return None

    def clear_pending(self) -> None:
        self.pending_team1_score = None
        self.pending_team2_score = None
        self.pending_submitted_by_partnership_id = None
