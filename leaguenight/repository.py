"""
Persistence interface for league night state.

Components never touch the session directly: they receive a
LeagueNightRepository. Tests build one over an in-memory SQLite engine.
Derived values (games played tonight, last played) are always aggregated
from match history, never stored.
"""
from datetime import date
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, or_
from sqlmodel import Session, select

from leaguenight.models.check_in import CheckIn
from leaguenight.models.league_night import LeagueDay, LeagueNightInstance
from leaguenight.models.match import MATCH_ACTIVE, MATCH_COMPLETED, Match
from leaguenight.models.partnership import REQUEST_PENDING, ConfirmedPartnership, PartnershipRequest
from leaguenight.models.player import LeagueMembership, Player


class LeagueNightRepository:
    def __init__(self, session: Session):
        self.session = session
        self.open_tx = None

    # ── Unit of work ────────────────────────────────────────────────────

    def add(self, obj) -> None:
        self.session.add(obj)

    def flush(self) -> None:
        self.session.flush()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    # ── Nights ──────────────────────────────────────────────────────────

    def get_instance(self, instance_id: int) -> Optional[LeagueNightInstance]:
        return self.session.get(LeagueNightInstance, instance_id)

    def lock_instance(self, instance_id: int) -> Optional[LeagueNightInstance]:
        """Load the night row with a write lock (ignored by SQLite)."""
        return self.session.exec(
            select(LeagueNightInstance)
            .where(LeagueNightInstance.id == instance_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()

    def find_instance(self, league_id: int, on_date: date) -> Optional[LeagueNightInstance]:
        return self.session.exec(
            select(LeagueNightInstance).where(
                LeagueNightInstance.league_id == league_id,
                LeagueNightInstance.date == on_date,
            )
        ).first()

    def get_league_day(self, league_day_id: int) -> Optional[LeagueDay]:
        return self.session.get(LeagueDay, league_day_id)

    # ── Roster ──────────────────────────────────────────────────────────

    def get_player(self, player_id: int) -> Optional[Player]:
        return self.session.get(Player, player_id)

    def players_by_id(self, player_ids: Iterable[int]) -> Dict[int, Player]:
        ids = list(set(player_ids))
        if not ids:
            return {}
        players = self.session.exec(select(Player).where(Player.id.in_(ids))).all()
        return {p.id: p for p in players}

    def get_membership(self, league_id: int, player_id: int) -> Optional[LeagueMembership]:
        return self.session.exec(
            select(LeagueMembership).where(
                LeagueMembership.league_id == league_id,
                LeagueMembership.player_id == player_id,
            )
        ).first()

    # ── Check-ins ───────────────────────────────────────────────────────

    def active_check_in(self, instance_id: int, player_id: int) -> Optional[CheckIn]:
        return self.session.exec(
            select(CheckIn).where(
                CheckIn.instance_id == instance_id,
                CheckIn.player_id == player_id,
                CheckIn.is_active == True,  # noqa: E712
            )
        ).first()

    def latest_inactive_check_in(self, instance_id: int, player_id: int) -> Optional[CheckIn]:
        return self.session.exec(
            select(CheckIn)
            .where(
                CheckIn.instance_id == instance_id,
                CheckIn.player_id == player_id,
                CheckIn.is_active == False,  # noqa: E712
            )
            .order_by(CheckIn.id.desc())
        ).first()

    def active_check_ins(self, instance_id: int) -> List[CheckIn]:
        return list(
            self.session.exec(
                select(CheckIn)
                .where(CheckIn.instance_id == instance_id, CheckIn.is_active == True)  # noqa: E712
                .order_by(CheckIn.checked_in_at, CheckIn.id)
            ).all()
        )

    def checked_in_player_ids(self, instance_id: int) -> set:
        return {c.player_id for c in self.active_check_ins(instance_id)}

    # ── Partnership requests ────────────────────────────────────────────

    def get_request(self, request_id: int) -> Optional[PartnershipRequest]:
        return self.session.get(PartnershipRequest, request_id)

    def pending_request_between(self, instance_id: int, a: int, b: int) -> Optional[PartnershipRequest]:
        return self.session.exec(
            select(PartnershipRequest).where(
                PartnershipRequest.instance_id == instance_id,
                PartnershipRequest.status == REQUEST_PENDING,
                or_(
                    (PartnershipRequest.requester_id == a) & (PartnershipRequest.requested_id == b),
                    (PartnershipRequest.requester_id == b) & (PartnershipRequest.requested_id == a),
                ),
            )
        ).first()

    def pending_requests_involving(self, instance_id: int, player_ids: Iterable[int]) -> List[PartnershipRequest]:
        ids = list(player_ids)
        return list(
            self.session.exec(
                select(PartnershipRequest)
                .where(
                    PartnershipRequest.instance_id == instance_id,
                    PartnershipRequest.status == REQUEST_PENDING,
                    or_(
                        PartnershipRequest.requester_id.in_(ids),
                        PartnershipRequest.requested_id.in_(ids),
                    ),
                )
                .order_by(PartnershipRequest.created_at.desc(), PartnershipRequest.id.desc())
            ).all()
        )

    # ── Partnerships ────────────────────────────────────────────────────

    def get_partnership(self, partnership_id: int) -> Optional[ConfirmedPartnership]:
        return self.session.get(ConfirmedPartnership, partnership_id)

    def partnerships_by_id(self, partnership_ids: Iterable[int]) -> Dict[int, ConfirmedPartnership]:
        ids = list(set(partnership_ids))
        if not ids:
            return {}
        rows = self.session.exec(select(ConfirmedPartnership).where(ConfirmedPartnership.id.in_(ids))).all()
        return {p.id: p for p in rows}

    def active_partnership_for(self, instance_id: int, player_id: int) -> Optional[ConfirmedPartnership]:
        return self.session.exec(
            select(ConfirmedPartnership).where(
                ConfirmedPartnership.instance_id == instance_id,
                ConfirmedPartnership.is_active == True,  # noqa: E712
                or_(
                    ConfirmedPartnership.player1_id == player_id,
                    ConfirmedPartnership.player2_id == player_id,
                ),
            )
        ).first()

    def active_partnerships(self, instance_id: int) -> List[ConfirmedPartnership]:
        return list(
            self.session.exec(
                select(ConfirmedPartnership)
                .where(
                    ConfirmedPartnership.instance_id == instance_id,
                    ConfirmedPartnership.is_active == True,  # noqa: E712
                )
                .order_by(ConfirmedPartnership.confirmed_at, ConfirmedPartnership.id)
            ).all()
        )

    def waiting_partnerships(self, instance_id: int) -> List[ConfirmedPartnership]:
        """Active partnerships with no active match and neither player on court."""
        busy = self.busy_partnership_ids(instance_id)
        on_court = self.busy_player_ids(instance_id)
        return [
            p for p in self.active_partnerships(instance_id)
            if p.id not in busy and not on_court.intersection(p.player_ids)
        ]

    # ── Matches ─────────────────────────────────────────────────────────

    def get_match(self, match_id: int) -> Optional[Match]:
        return self.session.get(Match, match_id)

    def matches(self, instance_id: int) -> List[Match]:
        return list(
            self.session.exec(
                select(Match)
                .where(Match.instance_id == instance_id)
                .order_by(Match.created_at.desc(), Match.id.desc())
            ).all()
        )

    def active_matches(self, instance_id: int) -> List[Match]:
        return list(
            self.session.exec(
                select(Match)
                .where(Match.instance_id == instance_id, Match.status == MATCH_ACTIVE)
                .order_by(Match.court_number)
            ).all()
        )

    def completed_matches(self, instance_id: int) -> List[Match]:
        return list(
            self.session.exec(
                select(Match)
                .where(Match.instance_id == instance_id, Match.status == MATCH_COMPLETED)
                .order_by(Match.completed_at, Match.id)
            ).all()
        )

    def busy_partnership_ids(self, instance_id: int) -> set:
        busy = set()
        for m in self.active_matches(instance_id):
            busy.update(m.partnership_ids)
        return busy

    def busy_player_ids(self, instance_id: int) -> set:
        """Players in an active match, including through partnerships dissolved mid-match."""
        partnerships = self.partnerships_by_id(self.busy_partnership_ids(instance_id))
        return {pid for p in partnerships.values() for pid in p.player_ids}

    def busy_court_numbers(self, instance_id: int) -> set:
        return {m.court_number for m in self.active_matches(instance_id)}

    def active_match_for_partnership(self, instance_id: int, partnership_id: int) -> Optional[Match]:
        return self.session.exec(
            select(Match).where(
                Match.instance_id == instance_id,
                Match.status == MATCH_ACTIVE,
                or_(Match.partnership1_id == partnership_id, Match.partnership2_id == partnership_id),
            )
        ).first()

    def games_played_tonight(self, instance_id: int) -> Dict[int, int]:
        """Completed-match count per partnership id (partnerships with none are absent)."""
        counts: Dict[int, int] = {}
        for column in (Match.partnership1_id, Match.partnership2_id):
            rows = self.session.exec(
                select(column, func.count(Match.id))
                .where(Match.instance_id == instance_id, Match.status == MATCH_COMPLETED)
                .group_by(column)
            ).all()
            for partnership_id, n in rows:
                counts[partnership_id] = counts.get(partnership_id, 0) + int(n)
        return counts

    def last_played_at(self, instance_id: int) -> Dict[int, object]:
        """Most recent completion time per partnership id."""
        latest: Dict[int, object] = {}
        for column in (Match.partnership1_id, Match.partnership2_id):
            rows = self.session.exec(
                select(column, func.max(Match.completed_at))
                .where(Match.instance_id == instance_id, Match.status == MATCH_COMPLETED)
                .group_by(column)
            ).all()
            for partnership_id, ts in rows:
                if ts is not None and (partnership_id not in latest or ts > latest[partnership_id]):
                    latest[partnership_id] = ts
        return latest
