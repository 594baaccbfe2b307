"""Notification log model for tracking outbound player texts."""

from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel


class NotificationLog(SQLModel, table=True):
    """Log of every notification send attempt."""

    __tablename__ = "notification_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    instance_id: int = Field(foreign_key="league_night_instance.id", index=True)
    player_id: Optional[int] = Field(default=None, foreign_key="player.id")
    phone_number: str  # Recipient phone in E.164 format
    message_body: str
    message_type: str  # match_assigned|score_submitted|partnership_requested
    twilio_sid: Optional[str] = Field(default=None)
    status: str = Field(default="queued")  # queued|sent|dry_run|failed
    error_message: Optional[str] = Field(default=None)
    sent_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
