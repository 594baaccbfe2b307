"""
Check-in registry: who is present for a night.

Check-ins are soft records. Checking out deactivates the row, dissolves the
player's partnership (a pair cannot play one member short) and withdraws
their pending partnership requests. A match already in progress is left
alone; it is reported for admin attention instead.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from leaguenight.models.check_in import CheckIn
from leaguenight.models.match import Match
from leaguenight.models.partnership import REQUEST_REJECTED, ConfirmedPartnership
from leaguenight.repository import LeagueNightRepository
from leaguenight.services import events
from leaguenight.services.authz import is_member
from leaguenight.services.errors import AlreadyCheckedIn, NightCompleted, NotAuthorized, NotCheckedIn, NotFound
from leaguenight.services.locks import NightComponent, NightTransaction

logger = logging.getLogger(__name__)


@dataclass
class CheckOutResult:
    check_in: CheckIn
    dissolved_partnership: Optional[ConfirmedPartnership] = None
    rejected_request_ids: List[int] = field(default_factory=list)
    flagged_match_ids: List[int] = field(default_factory=list)


def matches_needing_attention(repo: LeagueNightRepository, instance_id: int) -> List[Dict]:
    """Active matches containing a player who is no longer checked in."""
    present = repo.checked_in_player_ids(instance_id)
    active = repo.active_matches(instance_id)
    partnerships = repo.partnerships_by_id(pid for m in active for pid in m.partnership_ids)

    flagged = []
    for m in active:
        players = [pid for p_id in m.partnership_ids for pid in partnerships[p_id].player_ids]
        missing = [pid for pid in players if pid not in present]
        if missing:
            flagged.append({"match": m, "missing_player_ids": missing})
    return flagged


def dissolve_partnership(repo: LeagueNightRepository, tx: NightTransaction, partnership: ConfirmedPartnership, reason: str) -> None:
    partnership.is_active = False
    partnership.deactivated_at = datetime.utcnow()
    repo.add(partnership)
    tx.emit(
        events.PARTNERSHIP_REMOVED,
        partnership_id=partnership.id,
        player_ids=list(partnership.player_ids),
        reason=reason,
    )


class CheckInRegistry(NightComponent):
    def check_in(self, instance_id: int, player_id: int, forced: bool = False) -> CheckIn:
        """
        Record a player's presence. ``forced`` is the admin path and skips
        the league-membership requirement.

        Raises:
            NightCompleted, NotFound, NotAuthorized, AlreadyCheckedIn
        """
        with self.transaction(instance_id) as tx:
            instance = tx.instance
            if instance.is_completed:
                raise NightCompleted("League night has already ended")
            if not self.repo.get_player(player_id):
                raise NotFound(f"Player {player_id} not found")
            if not forced and not is_member(self.repo, instance, player_id):
                raise NotAuthorized("Only league members can check in")
            if self.repo.active_check_in(instance_id, player_id):
                raise AlreadyCheckedIn("Player is already checked in")

            record = self.repo.latest_inactive_check_in(instance_id, player_id)
            if record:
                record.is_active = True
                record.checked_in_at = datetime.utcnow()
                record.checked_out_at = None
            else:
                record = CheckIn(instance_id=instance_id, player_id=player_id)
            self.repo.add(record)
            self.repo.flush()

            tx.emit(events.ROSTER_CHANGED, player_id=player_id, action="check_in", forced=forced)
            self.allocator.maybe_allocate(tx)

        logger.info("Player %s checked in to night %s%s", player_id, instance_id, " (admin)" if forced else "")
        return record

    def check_out(self, instance_id: int, player_id: int, forced: bool = False) -> CheckOutResult:
        """
        Remove a player from the night.

        Raises:
            NotCheckedIn if the player has no active check-in
        """
        with self.transaction(instance_id) as tx:
            record = self.repo.active_check_in(instance_id, player_id)
            if not record:
                raise NotCheckedIn("Player is not checked in")

            record.is_active = False
            record.checked_out_at = datetime.utcnow()
            self.repo.add(record)
            result = CheckOutResult(check_in=record)

            partnership = self.repo.active_partnership_for(instance_id, player_id)
            if partnership:
                dissolve_partnership(self.repo, tx, partnership, reason="check_out")
                result.dissolved_partnership = partnership

            for req in self.repo.pending_requests_involving(instance_id, [player_id]):
                req.status = REQUEST_REJECTED
                req.responded_at = datetime.utcnow()
                self.repo.add(req)
                result.rejected_request_ids.append(req.id)
            self.repo.flush()

            for item in matches_needing_attention(self.repo, instance_id):
                match: Match = item["match"]
                if player_id in item["missing_player_ids"]:
                    result.flagged_match_ids.append(match.id)
                    tx.emit(
                        events.MATCH_FLAGGED,
                        match_id=match.id,
                        missing_player_ids=item["missing_player_ids"],
                    )

            tx.emit(events.ROSTER_CHANGED, player_id=player_id, action="check_out", forced=forced)
            self.allocator.maybe_allocate(tx)

        if result.flagged_match_ids:
            logger.warning(
                "Player %s left night %s mid-match; match(es) %s need admin attention",
                player_id, instance_id, result.flagged_match_ids,
            )
        else:
            logger.info("Player %s checked out of night %s", player_id, instance_id)
        return result

    def list_checked_in(self, instance_id: int) -> List[Dict]:
        check_ins = self.repo.active_check_ins(instance_id)
        players = self.repo.players_by_id(c.player_id for c in check_ins)
        partner_of: Dict[int, int] = {}
        for p in self.repo.active_partnerships(instance_id):
            partner_of[p.player1_id] = p.player2_id
            partner_of[p.player2_id] = p.player1_id

        rows = []
        for c in check_ins:
            player = players.get(c.player_id)
            rows.append({
                "player_id": c.player_id,
                "name": player.display_name if player else f"Player {c.player_id}",
                "skill_level": (player.skill_level if player else None) or "Intermediate",
                "checked_in_at": c.checked_in_at,
                "has_partner": c.player_id in partner_of,
                "partner_id": partner_of.get(c.player_id),
            })
        return rows
