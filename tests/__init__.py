# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from leaguenight.models.check_in import CheckIn  # noqa: F401
from leaguenight.models.league_night import LeagueDay, LeagueNightInstance  # noqa: F401
from leaguenight.models.match import Match  # noqa: F401
from leaguenight.models.notification_log import NotificationLog  # noqa: F401
from leaguenight.models.partnership import ConfirmedPartnership, PartnershipRequest  # noqa: F401
from leaguenight.models.player import LeagueMembership, Player  # noqa: F401
