"""
Privileged operations for league organizers.

Every entry point checks the actor's role first, then delegates to the
component that owns the transition, inside the same night transaction.
Admin paths skip "who may call this" restrictions, never the invariants.
"""
import logging
from typing import Any, Dict, List, Optional, Union

from leaguenight.models.check_in import CheckIn
from leaguenight.models.league_night import LeagueNightInstance
from leaguenight.models.match import Match
from leaguenight.models.partnership import ConfirmedPartnership
from leaguenight.services import events
from leaguenight.services.authz import require_admin
from leaguenight.services.check_in_registry import CheckInRegistry, CheckOutResult
from leaguenight.services.court_allocator import AllocationResult
from leaguenight.services.errors import NightCompleted, ValidationError
from leaguenight.services.locks import NightComponent
from leaguenight.services.match_lifecycle import MatchLifecycle
from leaguenight.services.partnership_negotiator import PartnershipNegotiator
from leaguenight.services.score_rules import parse_score, validate_score
from leaguenight.utils.courts import renumber_courts, validate_court_labels

logger = logging.getLogger(__name__)


class AdminOverrideGateway(NightComponent):
    def __init__(
        self,
        repo,
        bus,
        locks,
        allocator,
        check_ins: CheckInRegistry,
        partnerships: PartnershipNegotiator,
        matches: MatchLifecycle,
    ):
        super().__init__(repo, bus, locks, allocator)
        self.check_ins = check_ins
        self.partnerships = partnerships
        self.matches = matches

    def assign_match(
        self,
        instance_id: int,
        actor_id: int,
        partnership1_id: int,
        partnership2_id: int,
        court_number: int,
    ) -> Match:
        """Put two waiting partnerships on a free court."""
        with self.transaction(instance_id) as tx:
            require_admin(self.repo, tx.instance, actor_id)
            if tx.instance.is_completed:
                raise NightCompleted("League night has already ended")
            match = self.allocator.assign(tx, partnership1_id, partnership2_id, court_number)

        logger.info(
            "Admin %s assigned partnerships %s vs %s to court %s",
            actor_id, partnership1_id, partnership2_id, court_number,
        )
        return match

    def override_score(
        self,
        instance_id: int,
        actor_id: int,
        match_id: int,
        team1_score: Optional[int] = None,
        team2_score: Optional[int] = None,
        score: Optional[Union[str, Dict[str, Any]]] = None,
    ) -> Match:
        """
        Enter a final score directly, either as two integers or as a desk
        string like "15-13" (team1 first).
        """
        if score is not None:
            game = parse_score(score)
        elif team1_score is None or team2_score is None:
            raise ValidationError("Provide team1_score and team2_score, or a score like '15-13'")
        else:
            game = validate_score(team1_score, team2_score)

        with self.transaction(instance_id) as tx:
            require_admin(self.repo, tx.instance, actor_id)
            return self.matches.override_score(instance_id, match_id, game, actor_id=actor_id)

    def cancel_match(self, instance_id: int, actor_id: int, match_id: int) -> Match:
        with self.transaction(instance_id) as tx:
            require_admin(self.repo, tx.instance, actor_id)
            return self.matches.cancel_match(instance_id, match_id, actor_id=actor_id)

    def check_in(self, instance_id: int, actor_id: int, player_id: int) -> CheckIn:
        with self.transaction(instance_id) as tx:
            require_admin(self.repo, tx.instance, actor_id)
            return self.check_ins.check_in(instance_id, player_id, forced=True)

    def check_out(self, instance_id: int, actor_id: int, player_id: int) -> CheckOutResult:
        with self.transaction(instance_id) as tx:
            require_admin(self.repo, tx.instance, actor_id)
            return self.check_ins.check_out(instance_id, player_id, forced=True)

    def create_partnership(self, instance_id: int, actor_id: int, player1_id: int, player2_id: int) -> ConfirmedPartnership:
        with self.transaction(instance_id) as tx:
            require_admin(self.repo, tx.instance, actor_id)
            return self.partnerships.create_partnership(instance_id, player1_id, player2_id)

    def remove_partnership(
        self,
        instance_id: int,
        actor_id: int,
        partnership_id: Optional[int] = None,
        player_id: Optional[int] = None,
    ) -> ConfirmedPartnership:
        """Dissolve a partnership named by id or by one of its players."""
        if partnership_id is None and player_id is None:
            raise ValidationError("Provide partnership_id or player_id")
        with self.transaction(instance_id) as tx:
            require_admin(self.repo, tx.instance, actor_id)
            if partnership_id is not None:
                return self.partnerships.remove_partnership_by_id(instance_id, partnership_id)
            return self.partnerships.remove_partnership(instance_id, player_id)

    def update_courts(self, instance_id: int, actor_id: int, labels: List[str]) -> LeagueNightInstance:
        """
        Replace the court roster. Surviving labels keep their numbers; a
        removed court with a match in progress keeps that match until it ends.

        Raises:
            InvalidCourts for an empty list, blank or duplicate labels
        """
        clean = validate_court_labels(labels)
        with self.transaction(instance_id) as tx:
            instance = tx.instance
            require_admin(self.repo, instance, actor_id)
            before = list(instance.courts or [])
            # Assign a new list so the JSON column is marked dirty
            used = {m.court_number for m in self.repo.matches(instance_id)}
            instance.courts = renumber_courts(before, clean, reserved=used)
            self.repo.add(instance)
            self.repo.flush()

            kept = {c["number"] for c in instance.courts}
            removed = [c for c in before if c["number"] not in kept]
            busy = self.repo.busy_court_numbers(instance_id)
            still_playing = sorted(c["label"] for c in removed if c["number"] in busy)
            tx.emit(
                events.COURTS_UPDATED,
                courts=instance.courts,
                removed=[c["label"] for c in removed],
                removed_with_active_match=still_playing,
                actor_id=actor_id,
            )
            self.allocator.maybe_allocate(tx)

        logger.info("Admin %s set courts on night %s to %s", actor_id, instance_id, clean)
        return instance

    def toggle_auto_assignment(self, instance_id: int, actor_id: int, enabled: bool) -> Dict:
        """Flip the flag; switching it on runs the allocator immediately."""
        result: Optional[AllocationResult] = None
        with self.transaction(instance_id) as tx:
            instance = tx.instance
            require_admin(self.repo, instance, actor_id)
            changed = instance.auto_assignment_enabled != enabled
            instance.auto_assignment_enabled = enabled
            self.repo.add(instance)
            if changed:
                tx.emit(events.AUTO_ASSIGNMENT_TOGGLED, enabled=enabled, actor_id=actor_id)
            if enabled:
                result = self.allocator.maybe_allocate(tx)

        logger.info("Admin %s turned auto-assignment %s on night %s", actor_id, "on" if enabled else "off", instance_id)
        return {"instance": instance, "allocation": result}
