"""
SMS notifications for league night events.

Subscribes to the event bus and texts the affected players. Runs after the
triggering transaction has committed, in its own session, and records every
send attempt in notification_log. A delivery failure is logged, never raised.
"""
import logging
from typing import Callable, Dict, List, Optional

from sqlmodel import Session, select

from leaguenight.models.notification_log import NotificationLog
from leaguenight.models.player import Player
from leaguenight.services import events
from leaguenight.services.events import DomainEvent, EventBus
from leaguenight.services.twilio_service import TwilioService, get_player_phone_numbers

logger = logging.getLogger(__name__)

NOTIFIED_EVENTS = (
    events.MATCH_ASSIGNED,
    events.SCORE_SUBMITTED,
    events.PARTNERSHIP_REQUESTED,
)


def _names(players: List[Player]) -> str:
    return " / ".join(p.display_name for p in players) or "TBD"


class SmsNotifier:
    def __init__(self, session_factory: Callable[[], Session], twilio: TwilioService):
        self.session_factory = session_factory
        self.twilio = twilio
        self._handlers: Dict[str, Callable[[Session, DomainEvent], Optional[Dict]]] = {
            events.MATCH_ASSIGNED: self._match_assigned,
            events.SCORE_SUBMITTED: self._score_submitted,
            events.PARTNERSHIP_REQUESTED: self._partnership_requested,
        }

    def register(self, bus: EventBus) -> None:
        for name in NOTIFIED_EVENTS:
            bus.subscribe(name, self.handle)

    def handle(self, event: DomainEvent) -> None:
        handler = self._handlers.get(event.name)
        if handler is None:
            return
        with self.session_factory() as session:
            message = handler(session, event)
            if not message:
                return
            self._send(session, event, message["player_ids"], message["body"])

    # ── message builders ────────────────────────────────────────────────

    def _players(self, session: Session, player_ids: List[int]) -> Dict[int, Player]:
        if not player_ids:
            return {}
        rows = session.exec(select(Player).where(Player.id.in_(player_ids))).all()
        return {p.id: p for p in rows}

    def _match_assigned(self, session: Session, event: DomainEvent) -> Optional[Dict]:
        player_ids = event.payload.get("player_ids") or []
        players = self._players(session, player_ids)
        team1 = [players[pid] for pid in player_ids[:2] if pid in players]
        team2 = [players[pid] for pid in player_ids[2:] if pid in players]
        body = (
            f"League Night: you're up on Court {event.payload.get('court_label')}! "
            f"{_names(team1)} vs {_names(team2)}."
        )
        return {"player_ids": player_ids, "body": body}

    def _score_submitted(self, session: Session, event: DomainEvent) -> Optional[Dict]:
        body = (
            f"League Night: your opponents on Court {event.payload.get('court_label')} "
            f"reported {event.payload.get('score')}. Open the app to confirm or dispute."
        )
        return {"player_ids": event.payload.get("opponent_player_ids") or [], "body": body}

    def _partnership_requested(self, session: Session, event: DomainEvent) -> Optional[Dict]:
        requester = session.get(Player, event.payload.get("requester_id"))
        if requester is None:
            return None
        body = (
            f"League Night: {requester.display_name} wants to partner with you tonight. "
            f"Open the app to accept or decline."
        )
        return {"player_ids": [event.payload.get("requested_id")], "body": body}

    # ── delivery ────────────────────────────────────────────────────────

    def _send(self, session: Session, event: DomainEvent, player_ids: List[int], body: str) -> None:
        players = self._players(session, player_ids)
        recipients = get_player_phone_numbers(players[pid] for pid in player_ids if pid in players)
        if not recipients:
            logger.info("No textable players for %s on night %s", event.name, event.instance_id)
            return

        summary = self.twilio.send_bulk([{**r, "body": body} for r in recipients])
        for result in summary["results"]:
            session.add(NotificationLog(
                instance_id=event.instance_id,
                player_id=result["player_id"],
                phone_number=result["phone"],
                message_body=body,
                message_type=event.name,
                twilio_sid=result["sid"],
                status=result["status"],
                error_message=result["error"],
            ))
        session.commit()

        if summary["failed"]:
            logger.warning(
                "%d of %d %s text(s) failed on night %s",
                summary["failed"], summary["total"], event.name, event.instance_id,
            )
