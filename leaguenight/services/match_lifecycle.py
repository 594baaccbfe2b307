"""
Match score life cycle.

    active ──submit──▶ pending ──confirm──▶ completed
       ▲                  │
       └──dispute/cancel──┘

Scores are always stored from the match's point of view: team1 is
partnership1, team2 is partnership2. The acting partnership is resolved from
the acting player, so a player whose partnership dissolved mid-match can
still finish scoring it.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from leaguenight.models.match import (
    MATCH_ACTIVE,
    MATCH_CANCELLED,
    MATCH_COMPLETED,
    SCORE_CONFIRMED,
    SCORE_DISPUTED,
    SCORE_NONE,
    SCORE_PENDING,
    Match,
)
from leaguenight.models.partnership import ConfirmedPartnership
from leaguenight.models.player import Player
from leaguenight.repository import LeagueNightRepository
from leaguenight.services import events
from leaguenight.services.errors import (
    NoPendingScore,
    NotActive,
    NotAuthorized,
    NotFound,
    NotInMatch,
    ScoreAlreadyPending,
    SelfConfirmation,
)
from leaguenight.services.locks import NightComponent
from leaguenight.services.score_rules import GameScore, validate_score

logger = logging.getLogger(__name__)


def partnership_name(partnership: Optional[ConfirmedPartnership], players: Dict[int, Player]) -> str:
    if partnership is None:
        return "Unknown"
    names = []
    for pid in partnership.player_ids:
        player = players.get(pid)
        names.append(player.display_name if player else f"Player {pid}")
    return " / ".join(names)


def describe_match(
    match: Match,
    partnerships: Dict[int, ConfirmedPartnership],
    players: Dict[int, Player],
) -> Dict:
    """Flatten a match plus its partnership names into a response row."""
    p1 = partnerships.get(match.partnership1_id)
    p2 = partnerships.get(match.partnership2_id)
    return {
        "id": match.id,
        "court_number": match.court_number,
        "court_label": match.court_label,
        "status": match.status,
        "score_status": match.score_status,
        "partnership1_id": match.partnership1_id,
        "partnership2_id": match.partnership2_id,
        "team1_name": partnership_name(p1, players),
        "team2_name": partnership_name(p2, players),
        "team1_player_ids": list(p1.player_ids) if p1 else [],
        "team2_player_ids": list(p2.player_ids) if p2 else [],
        "team1_score": match.team1_score,
        "team2_score": match.team2_score,
        "pending_team1_score": match.pending_team1_score,
        "pending_team2_score": match.pending_team2_score,
        "pending_submitted_by_partnership_id": match.pending_submitted_by_partnership_id,
        "assigned_by": match.assigned_by,
        "created_at": match.created_at,
        "completed_at": match.completed_at,
        "cancelled_at": match.cancelled_at,
    }


def describe_matches(repo: LeagueNightRepository, matches: List[Match]) -> List[Dict]:
    partnerships = repo.partnerships_by_id(pid for m in matches for pid in m.partnership_ids)
    players = repo.players_by_id(pid for p in partnerships.values() for pid in p.player_ids)
    return [describe_match(m, partnerships, players) for m in matches]


class MatchLifecycle(NightComponent):
    def _load(self, instance_id: int, match_id: int) -> Match:
        match = self.repo.get_match(match_id)
        if not match or match.instance_id != instance_id:
            raise NotFound(f"Match {match_id} not found")
        return match

    def partnership_for_player(self, match: Match, player_id: int) -> int:
        """
        Which side of the match the player is on.

        Raises:
            NotInMatch if the player belongs to neither partnership
        """
        partnerships = self.repo.partnerships_by_id(match.partnership_ids)
        for partnership_id in match.partnership_ids:
            p = partnerships.get(partnership_id)
            if p is not None and player_id in p.player_ids:
                return partnership_id
        raise NotInMatch("You are not a player in this match")

    def _players_of(self, partnership_id: Optional[int]) -> List[int]:
        p = self.repo.get_partnership(partnership_id) if partnership_id else None
        return list(p.player_ids) if p else []

    # ── Player actions ──────────────────────────────────────────────────

    def submit_score(self, instance_id: int, match_id: int, player_id: int, team1_score: int, team2_score: int) -> Match:
        """
        Record a score for the opposing partnership to confirm.

        Raises:
            NotActive, NotInMatch, InvalidScore, ScoreAlreadyPending
        """
        with self.transaction(instance_id) as tx:
            match = self._load(instance_id, match_id)
            if match.status != MATCH_ACTIVE:
                raise NotActive(f"Match is {match.status}")
            submitter = self.partnership_for_player(match, player_id)
            score = validate_score(team1_score, team2_score)
            if match.score_status == SCORE_PENDING:
                raise ScoreAlreadyPending("A score is already awaiting confirmation")

            match.pending_team1_score = score.team1
            match.pending_team2_score = score.team2
            match.pending_submitted_by_partnership_id = submitter
            match.score_status = SCORE_PENDING
            self.repo.add(match)

            opponent = match.opponent_of(submitter)
            tx.emit(
                events.SCORE_SUBMITTED,
                match_id=match.id,
                court_label=match.court_label,
                score=score.display,
                submitted_by_partnership_id=submitter,
                opponent_partnership_id=opponent,
                opponent_player_ids=self._players_of(opponent),
            )

        logger.info("Score %s-%s submitted for match %s by partnership %s", team1_score, team2_score, match_id, submitter)
        return match

    def _awaiting_response(self, instance_id: int, match_id: int, player_id: int):
        match = self._load(instance_id, match_id)
        if match.status != MATCH_ACTIVE:
            raise NotActive(f"Match is {match.status}")
        responder = self.partnership_for_player(match, player_id)
        if match.score_status != SCORE_PENDING:
            raise NoPendingScore("No score is awaiting confirmation")
        if match.pending_submitted_by_partnership_id == responder:
            raise SelfConfirmation("The opposing partnership must respond to this score")
        return match, responder

    def confirm_score(self, instance_id: int, match_id: int, player_id: int) -> Match:
        """
        Accept the opponent's submission and complete the match.

        Raises:
            NotActive, NotInMatch, NoPendingScore, SelfConfirmation
        """
        with self.transaction(instance_id) as tx:
            match, confirmer = self._awaiting_response(instance_id, match_id, player_id)
            score = GameScore(match.pending_team1_score, match.pending_team2_score)
            self._complete(match, score)
            tx.emit(
                events.SCORE_CONFIRMED,
                match_id=match.id,
                score=score.display,
                confirmed_by_partnership_id=confirmer,
            )
            self.allocator.maybe_allocate(tx)

        logger.info("Match %s completed %s (confirmed by partnership %s)", match_id, score.display, confirmer)
        return match

    def dispute_score(self, instance_id: int, match_id: int, player_id: int) -> Match:
        """Reject the opponent's submission. The match stays active for resubmission."""
        with self.transaction(instance_id) as tx:
            match, disputer = self._awaiting_response(instance_id, match_id, player_id)
            disputed = f"{match.pending_team1_score}-{match.pending_team2_score}"
            match.clear_pending()
            match.score_status = SCORE_DISPUTED
            self.repo.add(match)
            tx.emit(
                events.SCORE_DISPUTED,
                match_id=match.id,
                disputed_score=disputed,
                disputed_by_partnership_id=disputer,
            )

        logger.info("Score %s on match %s disputed by partnership %s", disputed, match_id, disputer)
        return match

    def cancel_submission(self, instance_id: int, match_id: int, player_id: int) -> Match:
        """Withdraw your own pending submission before the opponent acts."""
        with self.transaction(instance_id) as tx:
            match = self._load(instance_id, match_id)
            if match.status != MATCH_ACTIVE:
                raise NotActive(f"Match is {match.status}")
            acting = self.partnership_for_player(match, player_id)
            if match.score_status != SCORE_PENDING:
                raise NoPendingScore("No score is awaiting confirmation")
            if match.pending_submitted_by_partnership_id != acting:
                raise NotAuthorized("Only the submitting partnership can withdraw this score")

            match.clear_pending()
            match.score_status = SCORE_NONE
            self.repo.add(match)
            tx.emit(events.SCORE_SUBMISSION_CANCELLED, match_id=match.id, partnership_id=acting)
        return match

    # ── Privileged transitions (authorization checked by the admin gateway) ─

    def override_score(self, instance_id: int, match_id: int, score: GameScore, actor_id: Optional[int] = None) -> Match:
        """
        Set the final score directly, skipping the pending stage.

        An active match is completed (and the allocator runs); a completed
        match has its score corrected in place.

        Raises:
            NotActive for a cancelled match
        """
        with self.transaction(instance_id) as tx:
            match = self._load(instance_id, match_id)
            if match.status == MATCH_CANCELLED:
                raise NotActive("Cannot score a cancelled match")

            was_active = match.status == MATCH_ACTIVE
            previous = None if was_active else f"{match.team1_score}-{match.team2_score}"
            if was_active:
                self._complete(match, score)
            else:
                match.team1_score = score.team1
                match.team2_score = score.team2
                self.repo.add(match)

            tx.emit(
                events.SCORE_OVERRIDDEN,
                match_id=match.id,
                score=score.display,
                previous_score=previous,
                actor_id=actor_id,
            )
            if was_active:
                self.allocator.maybe_allocate(tx)

        logger.info(
            "Admin %s set match %s to %s%s",
            actor_id, match_id, score.display, "" if was_active else f" (was {previous})",
        )
        return match

    def cancel_match(self, instance_id: int, match_id: int, actor_id: Optional[int] = None) -> Match:
        """Cancel an active match; both partnerships return to the waiting queue."""
        with self.transaction(instance_id) as tx:
            match = self._load(instance_id, match_id)
            if match.status != MATCH_ACTIVE:
                raise NotActive(f"Match is {match.status}")

            match.clear_pending()
            match.status = MATCH_CANCELLED
            match.score_status = SCORE_NONE
            match.cancelled_at = datetime.utcnow()
            self.repo.add(match)
            self.repo.flush()
            tx.emit(
                events.MATCH_CANCELLED,
                match_id=match.id,
                court_number=match.court_number,
                partnership_ids=list(match.partnership_ids),
                actor_id=actor_id,
            )
            self.allocator.maybe_allocate(tx)

        logger.info("Admin %s cancelled match %s on court %s", actor_id, match_id, match.court_label)
        return match

    # ── Reads ───────────────────────────────────────────────────────────

    def list_matches(self, instance_id: int) -> List[Dict]:
        return describe_matches(self.repo, self.repo.matches(instance_id))

    def standings(self, instance_id: int) -> List[Dict]:
        """Per-partnership games, wins and points from tonight's completed matches."""
        rows: Dict[int, Dict] = {}

        def row(partnership_id: int) -> Dict:
            if partnership_id not in rows:
                rows[partnership_id] = {
                    "partnership_id": partnership_id,
                    "games": 0,
                    "wins": 0,
                    "losses": 0,
                    "points_for": 0,
                    "points_against": 0,
                }
            return rows[partnership_id]

        for m in self.repo.completed_matches(instance_id):
            for mine, theirs, partnership_id in (
                (m.team1_score, m.team2_score, m.partnership1_id),
                (m.team2_score, m.team1_score, m.partnership2_id),
            ):
                r = row(partnership_id)
                r["games"] += 1
                r["points_for"] += mine or 0
                r["points_against"] += theirs or 0
                if (mine or 0) > (theirs or 0):
                    r["wins"] += 1
                else:
                    r["losses"] += 1

        partnerships = self.repo.partnerships_by_id(rows.keys())
        players = self.repo.players_by_id(pid for p in partnerships.values() for pid in p.player_ids)
        for partnership_id, r in rows.items():
            p = partnerships.get(partnership_id)
            r["name"] = partnership_name(p, players)
            r["player_ids"] = list(p.player_ids) if p else []
            r["is_active"] = bool(p and p.is_active)
            r["point_diff"] = r["points_for"] - r["points_against"]

        return sorted(rows.values(), key=lambda r: (-r["wins"], -r["point_diff"], r["partnership_id"]))

    # ── internals ───────────────────────────────────────────────────────

    def _complete(self, match: Match, score: GameScore) -> None:
        match.team1_score = score.team1
        match.team2_score = score.team2
        match.clear_pending()
        match.status = MATCH_COMPLETED
        match.score_status = SCORE_CONFIRMED
        match.completed_at = datetime.utcnow()
        self.repo.add(match)
        self.repo.flush()
