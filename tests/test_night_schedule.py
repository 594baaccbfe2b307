"""Night instances: lazy creation from the weekly template, auto-start and admin start/end."""
from datetime import date, datetime, time

import pytest
from sqlmodel import Session, select

from leaguenight.models.league_night import NIGHT_ACTIVE, NIGHT_COMPLETED, NIGHT_SCHEDULED, LeagueNightInstance
from leaguenight.services import events
from leaguenight.services.errors import NightCompleted, NotAuthorized, NotFound, PreconditionError
from leaguenight.services.night_schedule import next_occurrence
from tests.factories import FUTURE_DATE, check_in_all, make_admin, make_league_day, make_night, make_player, make_players, pair

MONDAY = date(2024, 1, 1)


class TestNextOccurrence:
    def test_same_day(self):
        assert next_occurrence(1, MONDAY) == MONDAY

    def test_later_in_week(self):
        assert next_occurrence(3, MONDAY) == date(2024, 1, 3)

    def test_wraps_to_next_week(self):
        assert next_occurrence(1, date(2024, 1, 2)) == date(2024, 1, 8)


class TestGetOrCreate:
    def test_creates_from_template(self, session: Session, engine):
        day = make_league_day(session, court_labels=["1", "5", "6"])
        night = engine.get_or_create_instance(day.id, on_date=FUTURE_DATE)
        assert night.status == NIGHT_SCHEDULED
        assert night.league_day_id == day.id
        assert night.start_time == time(18, 30)
        assert [c["label"] for c in night.courts] == ["1", "5", "6"]
        assert [c["number"] for c in night.courts] == [1, 2, 3]
        assert night.auto_assignment_enabled is True

    def test_is_idempotent(self, session: Session, engine):
        day = make_league_day(session)
        first = engine.get_or_create_instance(day.id, on_date=FUTURE_DATE)
        second = engine.get_or_create_instance(day.id, on_date=FUTURE_DATE)
        assert first.id == second.id
        assert len(session.exec(select(LeagueNightInstance)).all()) == 1

    def test_defaults_to_next_league_day(self, session: Session, engine):
        day = make_league_day(session, day_of_week=3)
        night = engine.get_or_create_instance(day.id, now=datetime(2024, 1, 1, 9, 0))
        assert night.date == date(2024, 1, 3)

    def test_unknown_template(self, engine):
        with pytest.raises(NotFound):
            engine.get_or_create_instance(404)

    def test_unknown_instance(self, engine):
        with pytest.raises(NotFound):
            engine.get_instance(404)


class TestAutoStart:
    def test_before_start_time_stays_scheduled(self, session: Session, engine):
        day = make_league_day(session)
        night = engine.get_or_create_instance(day.id, now=datetime(2024, 1, 1, 12, 0))
        assert night.status == NIGHT_SCHEDULED

    def test_read_after_start_time_activates(self, session: Session, engine):
        day = make_league_day(session)
        night = engine.get_or_create_instance(day.id, now=datetime(2024, 1, 1, 12, 0))

        night = engine.get_instance(night.id, now=datetime(2024, 1, 1, 18, 30))

        assert night.status == NIGHT_ACTIVE
        assert night.auto_started_at is not None
        started = [e for e in engine.recent_events(night.id) if e["name"] == events.NIGHT_STARTED]
        assert started[0]["payload"]["auto"] is True

    def test_auto_start_allocates_waiting_partnerships(self, session: Session, engine):
        day = make_league_day(session, court_labels=["1"])
        night = engine.get_or_create_instance(day.id, now=datetime(2024, 1, 1, 12, 0))
        players = make_players(session, 4)
        check_in_all(engine, night.id, players)
        pair(engine, night.id, players[0], players[1])
        pair(engine, night.id, players[2], players[3])
        assert engine.list_matches(night.id) == []

        engine.get_instance(night.id, now=datetime(2024, 1, 1, 19, 0))

        assert len(engine.list_matches(night.id)) == 1


class TestAdminStartEnd:
    def test_start_scheduled_night(self, session: Session, engine):
        night = make_night(session, active=False)
        admin = make_admin(session)
        started = engine.start_night(night.id, admin.id)
        assert started.status == NIGHT_ACTIVE
        assert started.started_at is not None
        with pytest.raises(PreconditionError, match="already active"):
            engine.start_night(night.id, admin.id)

    def test_end_night_reports_matches_on_court(self, session: Session, engine):
        night = make_night(session, court_labels=["1"], auto=True)
        admin = make_admin(session)
        players = make_players(session, 4)
        check_in_all(engine, night.id, players)
        pair(engine, night.id, players[0], players[1])
        pair(engine, night.id, players[2], players[3])

        result = engine.end_night(night.id, admin.id)

        assert result["instance"].status == NIGHT_COMPLETED
        assert result["instance"].ended_at is not None
        assert result["active_matches_remaining"] == 1
        with pytest.raises(NightCompleted):
            engine.end_night(night.id, admin.id)

    def test_member_cannot_end(self, session: Session, engine):
        night = make_night(session)
        member = make_player(session, "Member")
        with pytest.raises(NotAuthorized):
            engine.end_night(night.id, member.id)

    def test_completed_night_blocks_new_work(self, session: Session, engine):
        night = make_night(session, auto=False)
        admin = make_admin(session)
        a, b = make_players(session, 2)
        check_in_all(engine, night.id, [a, b])
        engine.end_night(night.id, admin.id)
        with pytest.raises(NightCompleted):
            engine.create_matches_now(night.id)
        with pytest.raises(NightCompleted):
            engine.send_partnership_request(night.id, a.id, b.id)

    def test_match_on_court_can_finish_after_end(self, session: Session, engine):
        night = make_night(session, court_labels=["1"], auto=True)
        admin = make_admin(session)
        players = make_players(session, 4)
        check_in_all(engine, night.id, players)
        first = pair(engine, night.id, players[0], players[1])
        pair(engine, night.id, players[2], players[3])
        match = engine.list_matches(night.id)[0]
        engine.end_night(night.id, admin.id)

        submitter = players[0] if match["partnership1_id"] == first.id else players[2]
        confirmer = players[2] if submitter is players[0] else players[0]
        engine.submit_score(night.id, match["id"], submitter.id, 15, 8)
        done = engine.confirm_score(night.id, match["id"], confirmer.id)

        assert done.completed_at is not None
        # No new match is created on a completed night
        assert len(engine.list_matches(night.id)) == 1
