from leaguenight.models.check_in import CheckIn
from leaguenight.models.league_night import LeagueDay, LeagueNightInstance
from leaguenight.models.match import Match
from leaguenight.models.notification_log import NotificationLog
from leaguenight.models.partnership import ConfirmedPartnership, PartnershipRequest
from leaguenight.models.player import LeagueMembership, Player

__all__ = [
    "Player",
    "LeagueMembership",
    "LeagueDay",
    "LeagueNightInstance",
    "CheckIn",
    "PartnershipRequest",
    "ConfirmedPartnership",
    "Match",
    "NotificationLog",
]
