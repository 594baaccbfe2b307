"""
Fair-queue court allocation.

Pairs waiting partnerships (confirmed, active, not in an active match, no
player still on court from an earlier pairing) onto free courts:

1. games played tonight is aggregated from completed matches
2. a partnership with zero games is ranked at the current minimum of the
   waiting set rather than below it, so a freshly formed pair never jumps
   ahead of pairs that are level with it
3. ascending by effective games; ties ordered by the tiebreak strategy
4. k = min(len(waiting) // 2, len(free courts)); entries (2i, 2i+1) meet on
   the i-th free court in stored court order

Only the waiting set is ever read, so running it twice without an
intervening change creates nothing the second time. Callers must hold the
night lock (see services.locks.night_transaction).
"""
import logging
from dataclasses import dataclass, field
from itertools import groupby
from typing import Any, Dict, List, Optional

from leaguenight.models.match import MATCH_ACTIVE, SCORE_NONE, Match
from leaguenight.models.partnership import ConfirmedPartnership
from leaguenight.repository import LeagueNightRepository
from leaguenight.services import events
from leaguenight.services.errors import CourtUnavailable, NotFound, PartnershipBusy, ValidationError
from leaguenight.services.locks import NightTransaction
from leaguenight.services.tiebreak import (
    TIEBREAK_SKILL,
    TiebreakContext,
    TiebreakStrategy,
    build_tiebreak,
    skill_rating,
)

logger = logging.getLogger(__name__)

REASON_CREATED = "created"
REASON_INSUFFICIENT_PARTNERSHIPS = "insufficient_partnerships"
REASON_NO_COURTS = "no_courts"


@dataclass
class RankedPartnership:
    partnership: ConfirmedPartnership
    games_played: int
    effective_games: int


@dataclass
class AllocationResult:
    matches: List[Match] = field(default_factory=list)
    reason: str = REASON_CREATED
    partnerships_waiting: int = 0
    courts_free: int = 0
    courts_in_use: int = 0
    total_courts: int = 0

    @property
    def next_match_possible(self) -> bool:
        return self.partnerships_waiting >= 2 and self.courts_free > 0

    @property
    def message(self) -> str:
        if self.matches:
            n = len(self.matches)
            return f"Created {n} match{'' if n == 1 else 'es'}"
        if self.reason == REASON_NO_COURTS:
            return "All courts are currently occupied"
        return "Need at least 2 partnerships to create matches"


def effective_games(games_played: Dict[int, int], waiting: List[ConfirmedPartnership]) -> Dict[int, int]:
    """Games each waiting partnership is ranked by (zero clamps to the waiting minimum)."""
    if not waiting:
        return {}
    counts = {p.id: games_played.get(p.id, 0) for p in waiting}
    min_games = min(counts.values())
    return {pid: (min_games if n == 0 else n) for pid, n in counts.items()}


def rank_partnerships(
    waiting: List[ConfirmedPartnership],
    games_played: Dict[int, int],
    tiebreak: TiebreakStrategy,
    context: Optional[TiebreakContext] = None,
) -> List[RankedPartnership]:
    """Order waiting partnerships by effective games, ties resolved by the strategy."""
    context = context or TiebreakContext()
    effective = effective_games(games_played, waiting)
    by_rank = sorted(waiting, key=lambda p: (effective[p.id], p.id))

    ranked: List[RankedPartnership] = []
    for eff, group in groupby(by_rank, key=lambda p: effective[p.id]):
        for p in tiebreak.order(list(group), context):
            ranked.append(RankedPartnership(p, games_played.get(p.id, 0), eff))
    return ranked


def court_label(court: Dict[str, Any]) -> str:
    return str(court.get("label") or court["number"])


class CourtAllocator:
    def __init__(self, repo: LeagueNightRepository, tiebreak: Optional[TiebreakStrategy] = None):
        self.repo = repo
        self.tiebreak = tiebreak or build_tiebreak()

    def free_courts(self, instance) -> List[Dict[str, Any]]:
        busy = self.repo.busy_court_numbers(instance.id)
        return [c for c in instance.courts if c["number"] not in busy]

    def _context(self, instance_id: int, waiting: List[ConfirmedPartnership]) -> TiebreakContext:
        context = TiebreakContext(last_played_at=self.repo.last_played_at(instance_id))
        if getattr(self.tiebreak, "name", None) == TIEBREAK_SKILL:
            players = self.repo.players_by_id(pid for p in waiting for pid in p.player_ids)
            context.partnership_skill = {
                p.id: sum(skill_rating(players[pid].skill_level if pid in players else None) for pid in p.player_ids)
                for p in waiting
            }
        return context

    def rank_waiting(self, instance_id: int) -> List[RankedPartnership]:
        waiting = self.repo.waiting_partnerships(instance_id)
        games = self.repo.games_played_tonight(instance_id)
        return rank_partnerships(waiting, games, self.tiebreak, self._context(instance_id, waiting))

    def allocate(self, tx: NightTransaction) -> AllocationResult:
        """Create as many fair matches as waiting partnerships and free courts allow."""
        instance = tx.instance
        ranked = self.rank_waiting(instance.id)
        free = self.free_courts(instance)
        roster = {c["number"] for c in instance.courts}
        busy_courts = len(roster & self.repo.busy_court_numbers(instance.id))

        k = min(len(ranked) // 2, len(free))
        result = AllocationResult(total_courts=len(instance.courts))

        if k == 0:
            result.reason = REASON_INSUFFICIENT_PARTNERSHIPS if len(ranked) < 2 else REASON_NO_COURTS
            result.partnerships_waiting = len(ranked)
            result.courts_free = len(free)
            result.courts_in_use = busy_courts
            logger.info(
                "Allocation on night %s created nothing (%s): %d waiting, %d free courts",
                instance.id, result.reason, len(ranked), len(free),
            )
            return result

        for i in range(k):
            match = self._create_match(
                tx,
                ranked[2 * i].partnership,
                ranked[2 * i + 1].partnership,
                free[i],
                assigned_by="auto",
            )
            result.matches.append(match)

        result.partnerships_waiting = len(ranked) - 2 * k
        result.courts_free = len(free) - k
        result.courts_in_use = busy_courts + k
        logger.info(
            "Allocation on night %s created %d match(es); %d partnership(s) still waiting",
            instance.id, k, result.partnerships_waiting,
        )
        return result

    def maybe_allocate(self, tx: NightTransaction) -> Optional[AllocationResult]:
        """Auto-assignment hook: runs only on an active night with auto-assignment on."""
        instance = tx.instance
        if not instance.is_active or not instance.auto_assignment_enabled:
            return None
        return self.allocate(tx)

    def assign(
        self,
        tx: NightTransaction,
        partnership1_id: int,
        partnership2_id: int,
        court_number: int,
    ) -> Match:
        """Manual assignment with the same invariants as automatic allocation."""
        instance = tx.instance
        if partnership1_id == partnership2_id:
            raise ValidationError("A partnership cannot play against itself")

        partnerships = []
        on_court = self.repo.busy_player_ids(instance.id)
        for pid in (partnership1_id, partnership2_id):
            p = self.repo.get_partnership(pid)
            if not p or p.instance_id != instance.id:
                raise NotFound(f"Partnership {pid} not found")
            if not p.is_active:
                raise PartnershipBusy(f"Partnership {pid} is no longer active")
            if self.repo.active_match_for_partnership(instance.id, pid):
                raise PartnershipBusy(f"Partnership {pid} is already in an active match")
            if on_court.intersection(p.player_ids):
                raise PartnershipBusy(f"A player in partnership {pid} is still on court")
            partnerships.append(p)

        court = next((c for c in instance.courts if c["number"] == court_number), None)
        if court is None:
            raise NotFound(f"Court {court_number} not found")
        if court_number in self.repo.busy_court_numbers(instance.id):
            raise CourtUnavailable(f"Court {court_label(court)} already has an active match")

        return self._create_match(tx, partnerships[0], partnerships[1], court, assigned_by="admin")

    def _create_match(self, tx, p1, p2, court, assigned_by: str) -> Match:
        match = Match(
            instance_id=tx.instance.id,
            partnership1_id=p1.id,
            partnership2_id=p2.id,
            court_number=court["number"],
            court_label=court_label(court),
            status=MATCH_ACTIVE,
            score_status=SCORE_NONE,
            assigned_by=assigned_by,
        )
        self.repo.add(match)
        self.repo.flush()
        tx.emit(
            events.MATCH_ASSIGNED,
            match_id=match.id,
            court_number=match.court_number,
            court_label=match.court_label,
            partnership1_id=p1.id,
            partnership2_id=p2.id,
            player_ids=[*p1.player_ids, *p2.player_ids],
            assigned_by=assigned_by,
        )
        return match
