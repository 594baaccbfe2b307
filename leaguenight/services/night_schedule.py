"""
League night instance lifecycle: scheduled → active → completed.

Instances are materialised lazily from the recurring LeagueDay template the
first time a night is requested. A scheduled night becomes active by itself
once its start time has passed (checked on every read) or when an admin
starts it; only an admin can end it.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Dict, Optional

from sqlalchemy.exc import IntegrityError

from leaguenight.models.league_night import NIGHT_ACTIVE, NIGHT_COMPLETED, NIGHT_SCHEDULED, LeagueNightInstance
from leaguenight.services import events
from leaguenight.services.authz import require_admin
from leaguenight.services.court_allocator import AllocationResult
from leaguenight.services.errors import NightCompleted, NotFound, PreconditionError
from leaguenight.services.locks import NightComponent
from leaguenight.utils.courts import number_courts, parse_court_labels

logger = logging.getLogger(__name__)


def next_occurrence(day_of_week: int, today: date) -> date:
    """Next date falling on the ISO weekday (today if it matches)."""
    return today + timedelta(days=(day_of_week - today.isoweekday()) % 7)


def start_has_passed(instance: LeagueNightInstance, now: datetime) -> bool:
    return datetime.combine(instance.date, instance.start_time) <= now


class NightSchedule(NightComponent):
    def get_or_create_instance(
        self,
        league_day_id: int,
        on_date: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> LeagueNightInstance:
        """
        Find or materialise the night for a LeagueDay template.

        Raises:
            NotFound if the template does not exist
        """
        now = now or datetime.now()
        league_day = self.repo.get_league_day(league_day_id)
        if not league_day:
            raise NotFound(f"League day {league_day_id} not found")

        night_date = on_date or next_occurrence(league_day.day_of_week, now.date())
        instance = self.repo.find_instance(league_day.league_id, night_date)
        if instance is None:
            labels = parse_court_labels(league_day.court_labels)
            instance = LeagueNightInstance(
                league_id=league_day.league_id,
                league_day_id=league_day.id,
                date=night_date,
                start_time=league_day.start_time,
                courts=number_courts(labels),
            )
            self.repo.add(instance)
            try:
                self.repo.commit()
                logger.info(
                    "Created league night %s for league %s on %s (%d courts)",
                    instance.id, league_day.league_id, night_date, len(labels),
                )
            except IntegrityError:
                # Another request materialised the same night first
                self.repo.rollback()
                instance = self.repo.find_instance(league_day.league_id, night_date)

        return self.refresh_status(instance.id, now=now)

    def get_instance(self, instance_id: int, now: Optional[datetime] = None) -> LeagueNightInstance:
        return self.refresh_status(instance_id, now=now)

    def refresh_status(self, instance_id: int, now: Optional[datetime] = None) -> LeagueNightInstance:
        """Auto-start a scheduled night whose start time has passed."""
        now = now or datetime.now()
        instance = self.repo.get_instance(instance_id)
        if instance is None:
            raise NotFound(f"League night {instance_id} not found")
        if instance.status != NIGHT_SCHEDULED or not start_has_passed(instance, now):
            return instance

        with self.transaction(instance_id) as tx:
            instance = tx.instance
            # Re-check under the lock: a concurrent read may have started it
            if instance.status == NIGHT_SCHEDULED:
                instance.status = NIGHT_ACTIVE
                instance.auto_started_at = datetime.utcnow()
                self.repo.add(instance)
                tx.emit(events.NIGHT_STARTED, auto=True)
                logger.info("League night %s auto-started at %s", instance_id, now)
                self.allocator.maybe_allocate(tx)
        return instance

    def start_night(self, instance_id: int, actor_id: int) -> LeagueNightInstance:
        with self.transaction(instance_id) as tx:
            instance = tx.instance
            require_admin(self.repo, instance, actor_id)
            if instance.status != NIGHT_SCHEDULED:
                raise PreconditionError(f"League night is already {instance.status}")
            instance.status = NIGHT_ACTIVE
            instance.started_at = datetime.utcnow()
            self.repo.add(instance)
            tx.emit(events.NIGHT_STARTED, auto=False, actor_id=actor_id)
            self.allocator.maybe_allocate(tx)

        logger.info("League night %s started by %s", instance_id, actor_id)
        return instance

    def end_night(self, instance_id: int, actor_id: int) -> Dict:
        """Close the night. Matches still on court may finish and be scored."""
        with self.transaction(instance_id) as tx:
            instance = tx.instance
            require_admin(self.repo, instance, actor_id)
            if instance.is_completed:
                raise NightCompleted("League night has already ended")
            instance.status = NIGHT_COMPLETED
            instance.ended_at = datetime.utcnow()
            self.repo.add(instance)
            remaining = len(self.repo.active_matches(instance_id))
            tx.emit(events.NIGHT_ENDED, actor_id=actor_id, active_matches_remaining=remaining)

        logger.info("League night %s ended by %s (%d match(es) still on court)", instance_id, actor_id, remaining)
        return {"instance": instance, "active_matches_remaining": remaining}

    def create_matches_now(self, instance_id: int) -> AllocationResult:
        """On-demand allocation; runs whether or not auto-assignment is on."""
        with self.transaction(instance_id) as tx:
            if tx.instance.is_completed:
                raise NightCompleted("League night has already ended")
            return self.allocator.allocate(tx)
