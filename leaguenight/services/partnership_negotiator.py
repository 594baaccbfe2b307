"""
Partnership negotiation: request → accept/reject handshakes that produce a
confirmed two-player partnership for the night.

Eligibility (both checked in, neither partnered) is checked when the request
is sent and again when it is accepted, since either player may have paired
up elsewhere in between.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from leaguenight.models.partnership import (
    REQUEST_ACCEPTED,
    REQUEST_PENDING,
    REQUEST_REJECTED,
    ConfirmedPartnership,
    PartnershipRequest,
)
from leaguenight.services import events
from leaguenight.services.check_in_registry import dissolve_partnership
from leaguenight.services.errors import (
    AlreadyPartnered,
    LeagueNightError,
    NightCompleted,
    NoActivePartnership,
    NotAuthorized,
    NotCheckedIn,
    NotFound,
    PreconditionError,
    SameLeagueNightRosterViolation,
    ValidationError,
)
from leaguenight.services.locks import NightComponent, NightTransaction

logger = logging.getLogger(__name__)


class PartnershipNegotiator(NightComponent):
    def send_request(self, instance_id: int, requester_id: int, requested_id: int) -> PartnershipRequest:
        """
        Raises:
            ValidationError for a self-request
            SameLeagueNightRosterViolation unless both players are checked in,
            unpartnered and have no pending request between them
        """
        if requester_id == requested_id:
            raise ValidationError("Cannot partner with yourself")

        with self.transaction(instance_id) as tx:
            if tx.instance.is_completed:
                raise NightCompleted("League night has already ended")
            if not self.repo.get_player(requested_id):
                raise NotFound(f"Player {requested_id} not found")

            present = self.repo.checked_in_player_ids(instance_id)
            if requester_id not in present or requested_id not in present:
                raise SameLeagueNightRosterViolation("Both players must be checked in to form a partnership")
            if self.repo.active_partnership_for(instance_id, requester_id) or self.repo.active_partnership_for(
                instance_id, requested_id
            ):
                raise SameLeagueNightRosterViolation("One or both players already have a confirmed partnership")
            if self.repo.pending_request_between(instance_id, requester_id, requested_id):
                raise SameLeagueNightRosterViolation("A partnership request between these players is already pending")

            request = PartnershipRequest(
                instance_id=instance_id,
                requester_id=requester_id,
                requested_id=requested_id,
            )
            self.repo.add(request)
            self.repo.flush()
            tx.emit(
                events.PARTNERSHIP_REQUESTED,
                request_id=request.id,
                requester_id=requester_id,
                requested_id=requested_id,
            )

        logger.info("Partnership request %s: %s → %s (night %s)", request.id, requester_id, requested_id, instance_id)
        return request

    def _pending_request(self, instance_id: int, request_id: int) -> PartnershipRequest:
        request = self.repo.get_request(request_id)
        if not request or request.instance_id != instance_id:
            raise NotFound("Partnership request not found")
        if request.status != REQUEST_PENDING:
            raise PreconditionError(f"Partnership request is already {request.status}")
        return request

    def accept_request(self, instance_id: int, request_id: int, acceptor_id: int) -> ConfirmedPartnership:
        """
        Accept a pending request and confirm the partnership.

        A request whose players lost eligibility since it was sent is marked
        rejected (that change is kept) and the eligibility error is raised.

        Raises:
            NotFound, NotAuthorized, NotCheckedIn, AlreadyPartnered
        """
        failure: Optional[LeagueNightError] = None
        partnership: Optional[ConfirmedPartnership] = None

        with self.transaction(instance_id) as tx:
            if tx.instance.is_completed:
                raise NightCompleted("League night has already ended")
            request = self._pending_request(instance_id, request_id)
            if request.requested_id != acceptor_id:
                raise NotAuthorized("Only the requested player can accept this request")

            players = (request.requester_id, request.requested_id)
            present = self.repo.checked_in_player_ids(instance_id)
            if any(pid not in present for pid in players):
                failure = NotCheckedIn("Both players must still be checked in")
            elif any(self.repo.active_partnership_for(instance_id, pid) for pid in players):
                failure = AlreadyPartnered("One or both players already have a confirmed partnership")

            if failure:
                self._reject(tx, request, reason="ineligible")
            else:
                request.status = REQUEST_ACCEPTED
                request.responded_at = datetime.utcnow()
                self.repo.add(request)
                partnership = self._confirm(tx, request.requester_id, request.requested_id, request_id=request.id)

        if failure:
            logger.info("Partnership request %s could not be accepted: %s", request_id, failure.message)
            raise failure
        logger.info("Partnership %s confirmed on night %s", partnership.id, instance_id)
        return partnership

    def reject_request(self, instance_id: int, request_id: int, rejecter_id: int) -> PartnershipRequest:
        """Decline (requested player) or withdraw (requester) a pending request."""
        with self.transaction(instance_id) as tx:
            request = self._pending_request(instance_id, request_id)
            if not request.involves(rejecter_id):
                raise NotAuthorized("Only the players named in the request can reject it")
            self._reject(tx, request, reason="declined" if rejecter_id == request.requested_id else "withdrawn")
        return request

    def remove_partnership(self, instance_id: int, player_id: int) -> ConfirmedPartnership:
        """
        Dissolve the player's active partnership; both members return to the pool.

        Raises:
            NoActivePartnership
        """
        with self.transaction(instance_id) as tx:
            partnership = self.repo.active_partnership_for(instance_id, player_id)
            if not partnership:
                raise NoActivePartnership("Player has no active partnership")
            dissolve_partnership(self.repo, tx, partnership, reason="removed")
            self.allocator.maybe_allocate(tx)

        logger.info("Partnership %s removed on night %s", partnership.id, instance_id)
        return partnership

    def remove_partnership_by_id(self, instance_id: int, partnership_id: int) -> ConfirmedPartnership:
        with self.transaction(instance_id) as tx:
            partnership = self.repo.get_partnership(partnership_id)
            if not partnership or partnership.instance_id != instance_id:
                raise NotFound(f"Partnership {partnership_id} not found")
            if not partnership.is_active:
                raise NoActivePartnership("Partnership is not active")
            dissolve_partnership(self.repo, tx, partnership, reason="admin_removed")
            self.allocator.maybe_allocate(tx)
        return partnership

    def create_partnership(self, instance_id: int, player1_id: int, player2_id: int) -> ConfirmedPartnership:
        """
        Pair two players directly (admin path). Same invariants as acceptance.

        Raises:
            ValidationError, NotCheckedIn, AlreadyPartnered
        """
        if player1_id == player2_id:
            raise ValidationError("Cannot partner a player with themselves")

        with self.transaction(instance_id) as tx:
            if tx.instance.is_completed:
                raise NightCompleted("League night has already ended")
            present = self.repo.checked_in_player_ids(instance_id)
            for pid in (player1_id, player2_id):
                if pid not in present:
                    raise NotCheckedIn(f"Player {pid} is not checked in")
                if self.repo.active_partnership_for(instance_id, pid):
                    raise AlreadyPartnered(f"Player {pid} already has a confirmed partnership")
            partnership = self._confirm(tx, player1_id, player2_id, forced=True)

        logger.info("Admin paired %s and %s on night %s", player1_id, player2_id, instance_id)
        return partnership

    def list_requests(self, instance_id: int, player_id: int) -> Dict:
        """Pending requests sent or received by the player, plus their partnership."""
        requests = self.repo.pending_requests_involving(instance_id, [player_id])
        return {
            "sent": [r for r in requests if r.requester_id == player_id],
            "received": [r for r in requests if r.requested_id == player_id],
            "partnership": self.repo.active_partnership_for(instance_id, player_id),
        }

    # ── internals ───────────────────────────────────────────────────────

    def _reject(self, tx: NightTransaction, request: PartnershipRequest, reason: str) -> None:
        request.status = REQUEST_REJECTED
        request.responded_at = datetime.utcnow()
        self.repo.add(request)
        tx.emit(
            events.PARTNERSHIP_REQUEST_REJECTED,
            request_id=request.id,
            requester_id=request.requester_id,
            requested_id=request.requested_id,
            reason=reason,
        )

    def _confirm(
        self,
        tx: NightTransaction,
        player1_id: int,
        player2_id: int,
        request_id: Optional[int] = None,
        forced: bool = False,
    ) -> ConfirmedPartnership:
        partnership = ConfirmedPartnership(
            instance_id=tx.instance.id,
            player1_id=player1_id,
            player2_id=player2_id,
        )
        self.repo.add(partnership)
        self.repo.flush()

        superseded: List[int] = []
        for other in self.repo.pending_requests_involving(tx.instance.id, [player1_id, player2_id]):
            if other.id == request_id:
                continue
            self._reject(tx, other, reason="superseded")
            superseded.append(other.id)

        tx.emit(
            events.PARTNERSHIP_CONFIRMED,
            partnership_id=partnership.id,
            player_ids=[player1_id, player2_id],
            request_id=request_id,
            superseded_request_ids=superseded,
            forced=forced,
        )
        self.allocator.maybe_allocate(tx)
        return partnership
