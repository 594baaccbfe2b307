"""
Error taxonomy for league night operations.

Every error is local and recoverable by the caller. The ``kind`` tells the
transport layer how to surface it; ``retryable`` is only set for conflicts,
where re-fetching state and retrying immediately is safe.
"""

KIND_VALIDATION = "validation"
KIND_CONFLICT = "conflict"
KIND_NOT_FOUND = "not_found"
KIND_AUTHORIZATION = "authorization"
KIND_PRECONDITION = "precondition"


class LeagueNightError(Exception):
    """Base exception for league night errors"""

    kind = KIND_PRECONDITION

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def retryable(self) -> bool:
        return self.kind == KIND_CONFLICT

    @property
    def code(self) -> str:
        return type(self).__name__


class ValidationError(LeagueNightError):
    kind = KIND_VALIDATION


class ConflictError(LeagueNightError):
    kind = KIND_CONFLICT


class NotFound(LeagueNightError):
    kind = KIND_NOT_FOUND


class AuthorizationError(LeagueNightError):
    kind = KIND_AUTHORIZATION


class PreconditionError(LeagueNightError):
    kind = KIND_PRECONDITION


# Validation
class InvalidScore(ValidationError):
    pass


class InvalidCourts(ValidationError):
    pass


# Conflict
class AlreadyCheckedIn(ConflictError):
    pass


class AlreadyPartnered(ConflictError):
    pass


class SameLeagueNightRosterViolation(ConflictError):
    pass


class ScoreAlreadyPending(ConflictError):
    pass


class CourtUnavailable(ConflictError):
    pass


class PartnershipBusy(ConflictError):
    pass


# Authorization
class NotAuthorized(AuthorizationError):
    pass


class NotInMatch(AuthorizationError):
    pass


# Precondition
class NotCheckedIn(PreconditionError):
    pass


class NoActivePartnership(PreconditionError):
    pass


class NotActive(PreconditionError):
    pass


class NoPendingScore(PreconditionError):
    pass


class SelfConfirmation(PreconditionError):
    pass


class NightCompleted(PreconditionError):
    pass
