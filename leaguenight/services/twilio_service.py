"""Twilio SMS service wrapper.

Thin wrapper around the Twilio REST API used to text players when they are
put on court, asked to confirm a score, or sent a partnership request.
Runs in dry-run mode (log only) when credentials are not configured.
"""

import logging
import os
import re
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from twilio.rest import Client

logger = logging.getLogger(__name__)

MAX_BODY_LENGTH = 1600
PLACEHOLDER_PHONES = ("—", "-", "N/A", "n/a", "none", "None")
DELIVERED_STATUSES = ("queued", "sent", "dry_run")


def format_e164(phone: str, default_country: str = "1") -> str:
    """
    Normalize a phone number to E.164 format (+1XXXXXXXXXX for US).

    Accepts "+15551234567", "15551234567", "5551234567", "(555) 123-4567",
    "555-123-4567" and "555.123.4567".

    Raises:
      - ValueError if phone can't be parsed
    """
    if not phone or not phone.strip():
        raise ValueError("Phone number is empty")

    digits = re.sub(r"[^\d]", "", phone)

    if len(digits) == 10:
        return f"+{default_country}{digits}"
    elif len(digits) == 11 and digits.startswith(default_country):
        return f"+{digits}"
    elif len(digits) >= 10 and phone.strip().startswith("+"):
        return f"+{digits}"
    raise ValueError(
        f"Cannot parse phone number: '{phone}'. "
        f"Expected 10-digit US number or E.164 format."
    )


def validate_e164(phone: str) -> bool:
    """Check if a phone number is valid E.164 format."""
    return bool(re.match(r"^\+[1-9]\d{6,14}$", phone or ""))


def player_phone(player) -> Optional[str]:
    """E.164 cell number for a player, or None when missing or unparseable."""
    raw = (player.cell_phone or "").strip()
    if not raw or raw in PLACEHOLDER_PHONES:
        return None
    try:
        return format_e164(raw)
    except ValueError:
        logger.warning("Skipping invalid phone number on player %s: '%s'", player.id, raw)
        return None


def get_player_phone_numbers(players: Iterable) -> List[dict]:
    """
    Textable recipients for a group of players, deduplicated by number.

    Returns:
        List of {"player_id", "phone"} dicts
    """
    recipients = []
    seen = set()
    for player in players:
        phone = player_phone(player)
        if phone and phone not in seen:
            seen.add(phone)
            recipients.append({"player_id": player.id, "phone": phone})
    return recipients


class TwilioService:
    """
    Wrapper around Twilio REST API for sending SMS.

    Reads credentials from environment variables unless given:
      - TWILIO_ACCOUNT_SID
      - TWILIO_AUTH_TOKEN
      - TWILIO_FROM_NUMBER
    """

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        client: Optional[Client] = None,
    ):
        self.account_sid = account_sid if account_sid is not None else os.getenv("TWILIO_ACCOUNT_SID", "")
        self.auth_token = auth_token if auth_token is not None else os.getenv("TWILIO_AUTH_TOKEN", "")
        self.from_number = from_number if from_number is not None else os.getenv("TWILIO_FROM_NUMBER", "")
        self.client = client
        self.dry_run = False

        if self.client is not None:
            return
        if self.account_sid and self.auth_token and self.from_number:
            try:
                self.client = Client(self.account_sid, self.auth_token)
                logger.info("Twilio client initialized successfully.")
            except Exception as e:
                logger.error(f"Failed to initialize Twilio client: {e}")
                self.dry_run = True
        else:
            logger.warning(
                "Twilio credentials not configured. Running in dry-run mode. "
                "Set TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_FROM_NUMBER."
            )
            self.dry_run = True

    def send_sms(self, to: str, body: str) -> dict:
        """
        Send a single SMS message.

        Returns:
            dict with keys: sid, status, error
        """
        if not validate_e164(to):
            return {"sid": None, "status": "failed", "error": f"Invalid phone number format: {to}"}

        if len(body) > MAX_BODY_LENGTH:
            body = body[: MAX_BODY_LENGTH - 3] + "..."

        if self.dry_run:
            logger.info(f"[DRY RUN] SMS to {to}: {body[:80]}")
            return {
                "sid": f"DRY_RUN_{datetime.now(timezone.utc).isoformat()}",
                "status": "dry_run",
                "error": None,
            }

        try:
            message = self.client.messages.create(body=body, from_=self.from_number, to=to)
            logger.info(f"SMS sent to {to}: SID={message.sid}, status={message.status}")
            return {"sid": message.sid, "status": message.status, "error": None}
        except Exception as e:
            logger.error(f"Failed to send SMS to {to}: {e}")
            return {"sid": None, "status": "failed", "error": str(e)}

    def send_bulk(self, recipients: List[dict]) -> dict:
        """
        Send SMS to multiple recipients.

        Args:
            recipients: List of dicts with keys: phone, body, player_id (optional)

        Returns:
            dict with keys: total, sent, failed, results
        """
        results = []
        for r in recipients:
            result = self.send_sms(r.get("phone", ""), r.get("body", ""))
            result["phone"] = r.get("phone", "")
            result["player_id"] = r.get("player_id")
            results.append(result)

        sent = sum(1 for r in results if r["status"] in DELIVERED_STATUSES)
        return {
            "total": len(recipients),
            "sent": sent,
            "failed": len(results) - sent,
            "results": results,
        }

    @property
    def is_configured(self) -> bool:
        """Check if Twilio is properly configured (not in dry-run mode)."""
        return not self.dry_run


# Singleton instance
_twilio_service: Optional[TwilioService] = None


def get_twilio_service() -> TwilioService:
    """Get or create the singleton TwilioService instance."""
    global _twilio_service
    if _twilio_service is None:
        _twilio_service = TwilioService()
    return _twilio_service
