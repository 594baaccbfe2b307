"""
LeagueNightEngine: one object exposing every league night operation.

Wires the repository, the shared event bus and lock registry, the allocator
and the five components. Routes build one per request through ``get_engine``;
tests build one directly over their own session.
"""
from typing import Dict, List, Optional

from fastapi import Depends
from sqlmodel import Session

from leaguenight.database import get_session
from leaguenight.repository import LeagueNightRepository
from leaguenight.services.admin_gateway import AdminOverrideGateway
from leaguenight.services.check_in_registry import CheckInRegistry
from leaguenight.services.court_allocator import CourtAllocator
from leaguenight.services.events import EventBus, get_event_bus
from leaguenight.services.locks import InstanceLockRegistry, get_lock_registry
from leaguenight.services.match_lifecycle import MatchLifecycle
from leaguenight.services.night_schedule import NightSchedule
from leaguenight.services.partnership_negotiator import PartnershipNegotiator
from leaguenight.services.queue_snapshot import queue_snapshot
from leaguenight.services.tiebreak import TiebreakStrategy


class LeagueNightEngine:
    def __init__(
        self,
        session: Session,
        bus: Optional[EventBus] = None,
        locks: Optional[InstanceLockRegistry] = None,
        tiebreak: Optional[TiebreakStrategy] = None,
    ):
        self.repo = LeagueNightRepository(session)
        self.bus = bus or get_event_bus()
        self.locks = locks or get_lock_registry()
        self.allocator = CourtAllocator(self.repo, tiebreak)

        wiring = (self.repo, self.bus, self.locks, self.allocator)
        self.nights = NightSchedule(*wiring)
        self.check_ins = CheckInRegistry(*wiring)
        self.partnerships = PartnershipNegotiator(*wiring)
        self.matches = MatchLifecycle(*wiring)
        self.admin = AdminOverrideGateway(
            *wiring,
            check_ins=self.check_ins,
            partnerships=self.partnerships,
            matches=self.matches,
        )

    # Nights
    def get_or_create_instance(self, league_day_id, on_date=None, now=None):
        return self.nights.get_or_create_instance(league_day_id, on_date=on_date, now=now)

    def get_instance(self, instance_id, now=None):
        return self.nights.get_instance(instance_id, now=now)

    def start_night(self, instance_id, actor_id):
        return self.nights.start_night(instance_id, actor_id)

    def end_night(self, instance_id, actor_id):
        return self.nights.end_night(instance_id, actor_id)

    # Check-ins
    def check_in(self, instance_id, player_id):
        return self.check_ins.check_in(instance_id, player_id)

    def check_out(self, instance_id, player_id):
        return self.check_ins.check_out(instance_id, player_id)

    def list_checked_in(self, instance_id):
        return self.check_ins.list_checked_in(instance_id)

    # Partnerships
    def send_partnership_request(self, instance_id, requester_id, requested_id):
        return self.partnerships.send_request(instance_id, requester_id, requested_id)

    def accept_partnership_request(self, instance_id, request_id, acceptor_id):
        return self.partnerships.accept_request(instance_id, request_id, acceptor_id)

    def reject_partnership_request(self, instance_id, request_id, rejecter_id):
        return self.partnerships.reject_request(instance_id, request_id, rejecter_id)

    def remove_partnership(self, instance_id, player_id):
        return self.partnerships.remove_partnership(instance_id, player_id)

    def list_partnership_requests(self, instance_id, player_id):
        return self.partnerships.list_requests(instance_id, player_id)

    # Matches
    def create_matches_now(self, instance_id):
        return self.nights.create_matches_now(instance_id)

    def submit_score(self, instance_id, match_id, player_id, team1_score, team2_score):
        return self.matches.submit_score(instance_id, match_id, player_id, team1_score, team2_score)

    def confirm_score(self, instance_id, match_id, player_id):
        return self.matches.confirm_score(instance_id, match_id, player_id)

    def dispute_score(self, instance_id, match_id, player_id):
        return self.matches.dispute_score(instance_id, match_id, player_id)

    def cancel_submission(self, instance_id, match_id, player_id):
        return self.matches.cancel_submission(instance_id, match_id, player_id)

    def list_matches(self, instance_id) -> List[Dict]:
        return self.matches.list_matches(instance_id)

    def night_standings(self, instance_id) -> List[Dict]:
        return self.matches.standings(instance_id)

    # Read views
    def get_queue_snapshot(self, instance_id) -> Dict:
        self.nights.get_instance(instance_id)
        return queue_snapshot(self.repo, instance_id)

    def recent_events(self, instance_id, since_id: int = 0) -> List[Dict]:
        return [e.to_dict() for e in self.bus.recent(instance_id, since_id)]


def get_engine(session: Session = Depends(get_session)) -> LeagueNightEngine:
    """FastAPI dependency: an engine bound to the request's session."""
    return LeagueNightEngine(session)
