"""Role capability checks for privileged league night operations."""
from leaguenight.models.league_night import LeagueNightInstance
from leaguenight.models.player import PRIVILEGED_ROLES
from leaguenight.repository import LeagueNightRepository
from leaguenight.services.errors import NotAuthorized


def is_member(repo: LeagueNightRepository, instance: LeagueNightInstance, player_id: int) -> bool:
    return repo.get_membership(instance.league_id, player_id) is not None


def is_privileged(repo: LeagueNightRepository, instance: LeagueNightInstance, player_id: int) -> bool:
    membership = repo.get_membership(instance.league_id, player_id)
    return membership is not None and membership.role in PRIVILEGED_ROLES


def require_admin(repo: LeagueNightRepository, instance: LeagueNightInstance, actor_id: int) -> None:
    """
    Verify the actor holds the admin/organizer role for the night's league.

    Raises:
        NotAuthorized otherwise
    """
    if not is_privileged(repo, instance, actor_id):
        raise NotAuthorized("Admin or organizer role required")
