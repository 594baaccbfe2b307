"""Score workflow: submit → confirm | dispute → resubmit, plus admin override and cancel."""
import pytest
from sqlmodel import Session

from leaguenight.models.match import MATCH_ACTIVE, MATCH_CANCELLED, MATCH_COMPLETED, SCORE_CONFIRMED, SCORE_DISPUTED, SCORE_NONE, SCORE_PENDING
from leaguenight.services import events
from leaguenight.services.errors import (
    InvalidScore,
    NoPendingScore,
    NotActive,
    NotAuthorized,
    NotInMatch,
    ScoreAlreadyPending,
    SelfConfirmation,
)
from tests.factories import check_in_all, make_admin, make_night, make_player, make_players, pair


@pytest.fixture
def on_court(session: Session, engine):
    """Two partnerships on the night's only court, auto-assigned."""
    night = make_night(session, court_labels=["1"], auto=True)
    players = make_players(session, 4)
    check_in_all(engine, night.id, players)
    a = pair(engine, night.id, players[0], players[1])
    b = pair(engine, night.id, players[2], players[3])
    match = engine.list_matches(night.id)[0]
    # team1 is partnership1; pick a player from each side
    side = {a.id: players[0], b.id: players[2]}
    return {
        "night": night,
        "match_id": match["id"],
        "team1": side[match["partnership1_id"]],
        "team2": side[match["partnership2_id"]],
        "players": players,
    }


class TestSubmit:
    def test_submit_sets_pending(self, engine, on_court):
        match = engine.submit_score(on_court["night"].id, on_court["match_id"], on_court["team1"].id, 15, 11)
        assert match.score_status == SCORE_PENDING
        assert (match.pending_team1_score, match.pending_team2_score) == (15, 11)
        assert match.status == MATCH_ACTIVE

    def test_outsider_cannot_submit(self, session, engine, on_court):
        outsider = make_player(session, "Outsider")
        with pytest.raises(NotInMatch):
            engine.submit_score(on_court["night"].id, on_court["match_id"], outsider.id, 15, 11)

    def test_invalid_score(self, engine, on_court):
        with pytest.raises(InvalidScore, match="exactly 2"):
            engine.submit_score(on_court["night"].id, on_court["match_id"], on_court["team1"].id, 17, 13)

    def test_second_submission_conflicts(self, engine, on_court):
        night_id, match_id = on_court["night"].id, on_court["match_id"]
        engine.submit_score(night_id, match_id, on_court["team1"].id, 15, 11)
        with pytest.raises(ScoreAlreadyPending):
            engine.submit_score(night_id, match_id, on_court["team2"].id, 11, 15)


class TestConfirmationFlow:
    def test_dispute_then_resubmit_then_confirm(self, engine, on_court):
        night_id, match_id = on_court["night"].id, on_court["match_id"]
        a, b = on_court["team1"], on_court["team2"]

        engine.submit_score(night_id, match_id, a.id, 15, 11)
        disputed = engine.dispute_score(night_id, match_id, b.id)
        assert disputed.score_status == SCORE_DISPUTED
        assert disputed.status == MATCH_ACTIVE
        assert disputed.pending_team1_score is None

        engine.submit_score(night_id, match_id, b.id, 15, 13)
        done = engine.confirm_score(night_id, match_id, a.id)

        assert done.status == MATCH_COMPLETED
        assert done.score_status == SCORE_CONFIRMED
        assert (done.team1_score, done.team2_score) == (15, 13)
        assert done.completed_at is not None
        assert done.pending_submitted_by_partnership_id is None

    def test_self_confirmation_rejected(self, engine, on_court):
        night_id, match_id = on_court["night"].id, on_court["match_id"]
        engine.submit_score(night_id, match_id, on_court["team1"].id, 15, 11)
        # The submitter's partner is on the same side
        partner = on_court["players"][1] if on_court["team1"].id == on_court["players"][0].id else on_court["players"][3]
        with pytest.raises(SelfConfirmation):
            engine.confirm_score(night_id, match_id, partner.id)
        with pytest.raises(SelfConfirmation):
            engine.dispute_score(night_id, match_id, on_court["team1"].id)

    def test_confirm_without_pending(self, engine, on_court):
        with pytest.raises(NoPendingScore):
            engine.confirm_score(on_court["night"].id, on_court["match_id"], on_court["team2"].id)

    def test_cancel_submission(self, engine, on_court):
        night_id, match_id = on_court["night"].id, on_court["match_id"]
        engine.submit_score(night_id, match_id, on_court["team1"].id, 15, 11)
        with pytest.raises(NotAuthorized):
            engine.cancel_submission(night_id, match_id, on_court["team2"].id)
        match = engine.cancel_submission(night_id, match_id, on_court["team1"].id)
        assert match.score_status == SCORE_NONE
        assert match.pending_team1_score is None

    def test_completed_match_rejects_submissions(self, engine, on_court):
        night_id, match_id = on_court["night"].id, on_court["match_id"]
        engine.submit_score(night_id, match_id, on_court["team1"].id, 15, 11)
        engine.confirm_score(night_id, match_id, on_court["team2"].id)
        with pytest.raises(NotActive):
            engine.submit_score(night_id, match_id, on_court["team1"].id, 15, 9)

    def test_confirmation_frees_court_for_next_pair(self, session, engine, on_court):
        night_id, match_id = on_court["night"].id, on_court["match_id"]
        extra = make_players(session, 4)
        check_in_all(engine, night_id, extra)
        c = pair(engine, night_id, extra[0], extra[1])
        d = pair(engine, night_id, extra[2], extra[3])

        engine.submit_score(night_id, match_id, on_court["team1"].id, 15, 11)
        engine.confirm_score(night_id, match_id, on_court["team2"].id)

        active = [m for m in engine.list_matches(night_id) if m["status"] == MATCH_ACTIVE]
        assert len(active) == 1
        # Partnerships that have not played yet go first
        assert {active[0]["partnership1_id"], active[0]["partnership2_id"]} == {c.id, d.id}

    def test_player_from_dissolved_partnership_can_still_score(self, engine, on_court):
        night_id, match_id = on_court["night"].id, on_court["match_id"]
        engine.remove_partnership(night_id, on_court["team1"].id)
        match = engine.submit_score(night_id, match_id, on_court["team1"].id, 15, 11)
        assert match.score_status == SCORE_PENDING

    def test_events_published_after_commit(self, engine, on_court):
        night_id, match_id = on_court["night"].id, on_court["match_id"]
        seen = []
        engine.bus.subscribe("*", lambda e: seen.append(e.name))
        engine.submit_score(night_id, match_id, on_court["team1"].id, 15, 11)
        engine.confirm_score(night_id, match_id, on_court["team2"].id)
        # The freed court is immediately reassigned to the only two waiting pairs
        assert seen == [events.SCORE_SUBMITTED, events.SCORE_CONFIRMED, events.MATCH_ASSIGNED]

    def test_failed_operation_publishes_nothing(self, engine, on_court):
        seen = []
        engine.bus.subscribe("*", lambda e: seen.append(e.name))
        with pytest.raises(NoPendingScore):
            engine.confirm_score(on_court["night"].id, on_court["match_id"], on_court["team2"].id)
        assert seen == []


class TestAdminScore:
    def test_override_completes_active_match(self, session, engine, on_court):
        admin = make_admin(session)
        night_id, match_id = on_court["night"].id, on_court["match_id"]
        engine.submit_score(night_id, match_id, on_court["team1"].id, 15, 11)

        match = engine.admin.override_score(night_id, admin.id, match_id, score="13-15")

        assert match.status == MATCH_COMPLETED
        assert match.score_status == SCORE_CONFIRMED
        assert (match.team1_score, match.team2_score) == (13, 15)
        assert match.pending_team1_score is None

    def test_override_corrects_completed_match(self, session, engine, on_court):
        admin = make_admin(session)
        night_id, match_id = on_court["night"].id, on_court["match_id"]
        engine.admin.override_score(night_id, admin.id, match_id, team1_score=15, team2_score=11)
        match = engine.admin.override_score(night_id, admin.id, match_id, team1_score=16, team2_score=14)
        assert (match.team1_score, match.team2_score) == (16, 14)
        assert match.status == MATCH_COMPLETED

    def test_override_still_validates(self, session, engine, on_court):
        admin = make_admin(session)
        with pytest.raises(InvalidScore):
            engine.admin.override_score(on_court["night"].id, admin.id, on_court["match_id"], team1_score=14, team2_score=0)

    def test_member_cannot_override(self, engine, on_court):
        with pytest.raises(NotAuthorized):
            engine.admin.override_score(
                on_court["night"].id, on_court["team1"].id, on_court["match_id"], team1_score=15, team2_score=0
            )

    def test_cancel_match(self, session, engine, on_court):
        admin = make_admin(session)
        night_id, match_id = on_court["night"].id, on_court["match_id"]
        engine.submit_score(night_id, match_id, on_court["team1"].id, 15, 11)

        engine.admin.toggle_auto_assignment(night_id, admin.id, False)
        match = engine.admin.cancel_match(night_id, admin.id, match_id)

        assert match.status == MATCH_CANCELLED
        assert match.cancelled_at is not None
        assert match.pending_team1_score is None
        snapshot = engine.get_queue_snapshot(night_id)
        assert len(snapshot["waiting"]) == 2
        assert snapshot["courts_free"] == 1

        with pytest.raises(NotActive):
            engine.admin.override_score(night_id, admin.id, match_id, team1_score=15, team2_score=0)


class TestStandings:
    def test_standings_from_completed_matches(self, engine, on_court):
        night_id, match_id = on_court["night"].id, on_court["match_id"]
        engine.submit_score(night_id, match_id, on_court["team1"].id, 15, 11)
        engine.confirm_score(night_id, match_id, on_court["team2"].id)

        rows = engine.night_standings(night_id)
        assert [(r["wins"], r["losses"], r["points_for"], r["points_against"]) for r in rows] == [
            (1, 0, 15, 11),
            (0, 1, 11, 15),
        ]
        assert rows[0]["point_diff"] == 4
