"""Fair-queue allocation: ranking, pairing, idempotence and manual assignment."""
import random
from types import SimpleNamespace

import pytest
from sqlmodel import Session, select

from leaguenight.models.match import MATCH_ACTIVE, SCORE_NONE, Match
from leaguenight.services.court_allocator import (
    REASON_CREATED,
    REASON_INSUFFICIENT_PARTNERSHIPS,
    REASON_NO_COURTS,
    effective_games,
    rank_partnerships,
)
from leaguenight.services.errors import CourtUnavailable, NotFound, PartnershipBusy, ValidationError
from leaguenight.services.tiebreak import (
    RandomTiebreak,
    RoundRobinTiebreak,
    SkillTiebreak,
    TiebreakContext,
    build_tiebreak,
    skill_rating,
)
from tests.factories import check_in_all, completed_match, make_admin, make_night, make_players, pair


def _p(pid):
    return SimpleNamespace(id=pid, player_ids=(pid * 10, pid * 10 + 1))


# ---------------------------------------------------------------------------
# Pure ranking
# ---------------------------------------------------------------------------


class TestRanking:
    def test_zero_games_ranks_at_waiting_minimum(self):
        waiting = [_p(1), _p(2), _p(3)]
        assert effective_games({2: 1, 3: 2}, waiting) == {1: 0, 2: 1, 3: 2}

    def test_effective_games_empty(self):
        assert effective_games({}, []) == {}

    def test_fairness_picks_the_two_zero_partnerships(self):
        waiting = [_p(1), _p(2), _p(3), _p(4)]
        games = {1: 0, 2: 0, 3: 1, 4: 2}
        for seed in range(10):
            ranked = rank_partnerships(waiting, games, RandomTiebreak(random.Random(seed)))
            assert {r.partnership.id for r in ranked[:2]} == {1, 2}
            assert [r.partnership.id for r in ranked[2:]] == [3, 4]

    def test_ranked_entries_carry_counts(self):
        ranked = rank_partnerships([_p(1), _p(2)], {2: 3}, RoundRobinTiebreak())
        assert [(r.partnership.id, r.games_played, r.effective_games) for r in ranked] == [(1, 0, 0), (2, 3, 3)]

    def test_seeded_random_tiebreak_is_reproducible(self):
        waiting = [_p(i) for i in range(1, 9)]
        first = rank_partnerships(waiting, {}, RandomTiebreak(random.Random(42)))
        second = rank_partnerships(waiting, {}, RandomTiebreak(random.Random(42)))
        assert [r.partnership.id for r in first] == [r.partnership.id for r in second]

    def test_round_robin_prefers_longest_resting(self):
        context = TiebreakContext(last_played_at={1: 20, 2: 10})
        ordered = RoundRobinTiebreak().order([_p(1), _p(2), _p(3)], context)
        assert [p.id for p in ordered] == [3, 2, 1]

    def test_skill_orders_strongest_first(self):
        context = TiebreakContext(partnership_skill={1: 5.0, 2: 9.0, 3: 7.0})
        ordered = SkillTiebreak().order([_p(1), _p(2), _p(3)], context)
        assert [p.id for p in ordered] == [2, 3, 1]

    def test_skill_rating_parsing(self):
        assert skill_rating("Advanced") == 4.5
        assert skill_rating("3.75") == 3.75
        assert skill_rating(None) == 3.5
        assert skill_rating("unknown") == 3.5

    def test_build_tiebreak(self):
        assert isinstance(build_tiebreak("round_robin"), RoundRobinTiebreak)
        assert isinstance(build_tiebreak("SKILL"), SkillTiebreak)
        assert isinstance(build_tiebreak("random", seed=1), RandomTiebreak)
        with pytest.raises(ValueError, match="Unknown tiebreak"):
            build_tiebreak("coin_flip")


# ---------------------------------------------------------------------------
# Allocation against the database
# ---------------------------------------------------------------------------


def _active_matches(session: Session, night_id: int):
    session.expire_all()
    return session.exec(select(Match).where(Match.instance_id == night_id, Match.status == MATCH_ACTIVE)).all()


class TestAllocate:
    def test_five_players_two_partnerships_one_court(self, session: Session, engine):
        night = make_night(session, court_labels=["1"], auto=False)
        players = make_players(session, 5)
        check_in_all(engine, night.id, players)
        pair(engine, night.id, players[0], players[1])
        pair(engine, night.id, players[2], players[3])

        result = engine.create_matches_now(night.id)

        assert result.reason == REASON_CREATED
        assert len(result.matches) == 1
        assert result.partnerships_waiting == 0
        assert result.courts_free == 0
        assert result.courts_in_use == 1
        match = result.matches[0]
        assert match.status == MATCH_ACTIVE
        assert match.score_status == SCORE_NONE
        assert match.court_label == "1"

        snapshot = engine.get_queue_snapshot(night.id)
        assert snapshot["waiting"] == []
        assert [p["player_id"] for p in snapshot["unpartnered_players"]] == [players[4].id]

    def test_allocation_is_idempotent(self, session: Session, engine):
        night = make_night(session, court_labels=["1", "2", "3"], auto=False)
        players = make_players(session, 6)
        check_in_all(engine, night.id, players)
        for i in range(0, 6, 2):
            pair(engine, night.id, players[i], players[i + 1])

        first = engine.create_matches_now(night.id)
        second = engine.create_matches_now(night.id)

        assert len(first.matches) == 1
        assert second.matches == []
        assert second.reason == REASON_INSUFFICIENT_PARTNERSHIPS
        assert len(_active_matches(session, night.id)) == 1

    def test_k_bounded_by_courts(self, session: Session, engine):
        night = make_night(session, court_labels=["A", "B"], auto=False)
        players = make_players(session, 12)
        check_in_all(engine, night.id, players)
        for i in range(0, 12, 2):
            pair(engine, night.id, players[i], players[i + 1])

        result = engine.create_matches_now(night.id)

        assert len(result.matches) == 2
        assert [m.court_label for m in result.matches] == ["A", "B"]
        assert result.partnerships_waiting == 2
        again = engine.create_matches_now(night.id)
        assert again.reason == REASON_NO_COURTS
        assert "occupied" in again.message

    def test_no_court_or_partnership_double_booked(self, session: Session, engine):
        night = make_night(session, court_labels=["1", "2", "3"], auto=True)
        players = make_players(session, 16)
        check_in_all(engine, night.id, players)
        for i in range(0, 16, 2):
            pair(engine, night.id, players[i], players[i + 1])

        active = _active_matches(session, night.id)
        courts = [m.court_number for m in active]
        partnerships = [pid for m in active for pid in m.partnership_ids]
        assert len(active) == 3
        assert len(courts) == len(set(courts))
        assert len(partnerships) == len(set(partnerships))

    def test_fairness_against_match_history(self, session: Session, engine):
        night = make_night(session, court_labels=["1", "2"], auto=False)
        players = make_players(session, 10)
        check_in_all(engine, night.id, players)
        c = pair(engine, night.id, players[0], players[1])
        d = pair(engine, night.id, players[2], players[3])
        e = pair(engine, night.id, players[4], players[5])
        completed_match(session, night.id, c.id, d.id)
        completed_match(session, night.id, d.id, e.id)
        engine.partnerships.remove_partnership(night.id, players[4].id)  # e leaves the pool
        a = pair(engine, night.id, players[6], players[7])
        b = pair(engine, night.id, players[8], players[9])

        ranked = engine.allocator.rank_waiting(night.id)
        assert {r.partnership.id for r in ranked[:2]} == {a.id, b.id}
        assert [(r.partnership.id, r.games_played) for r in ranked[2:]] == [(c.id, 1), (d.id, 2)]

        # Close court 2 so only one match can be made
        admin = make_admin(session)
        engine.admin.update_courts(night.id, admin.id, ["1"])
        result = engine.create_matches_now(night.id)
        assert len(result.matches) == 1
        assert set(result.matches[0].partnership_ids) == {a.id, b.id}

    def test_auto_assignment_off_creates_nothing(self, session: Session, engine):
        night = make_night(session, court_labels=["1"], auto=False)
        players = make_players(session, 4)
        check_in_all(engine, night.id, players)
        pair(engine, night.id, players[0], players[1])
        pair(engine, night.id, players[2], players[3])
        assert _active_matches(session, night.id) == []

    def test_scheduled_night_does_not_auto_assign(self, session: Session, engine):
        night = make_night(session, court_labels=["1"], active=False, auto=True)
        players = make_players(session, 4)
        check_in_all(engine, night.id, players)
        pair(engine, night.id, players[0], players[1])
        pair(engine, night.id, players[2], players[3])
        assert _active_matches(session, night.id) == []


class TestManualAssign:
    @pytest.fixture
    def setup(self, session: Session, engine):
        night = make_night(session, court_labels=["1", "2"], auto=False)
        admin = make_admin(session)
        players = make_players(session, 6)
        check_in_all(engine, night.id, players)
        partnerships = [pair(engine, night.id, players[i], players[i + 1]) for i in range(0, 6, 2)]
        return night, admin, partnerships

    def test_assign_creates_match_like_allocator(self, engine, setup):
        night, admin, (p1, p2, _) = setup
        match = engine.admin.assign_match(night.id, admin.id, p1.id, p2.id, 2)
        assert match.court_number == 2
        assert match.status == MATCH_ACTIVE
        assert match.assigned_by == "admin"

    def test_same_partnership_rejected(self, engine, setup):
        night, admin, (p1, _, _) = setup
        with pytest.raises(ValidationError):
            engine.admin.assign_match(night.id, admin.id, p1.id, p1.id, 1)

    def test_busy_partnership_rejected(self, engine, setup):
        night, admin, (p1, p2, p3) = setup
        engine.admin.assign_match(night.id, admin.id, p1.id, p2.id, 1)
        with pytest.raises(PartnershipBusy) as exc:
            engine.admin.assign_match(night.id, admin.id, p1.id, p3.id, 2)
        assert exc.value.retryable is True

    def test_busy_court_rejected(self, engine, session, setup):
        night, admin, (p1, p2, p3) = setup
        engine.admin.assign_match(night.id, admin.id, p1.id, p2.id, 1)
        players = make_players(session, 2)
        check_in_all(engine, night.id, players)
        p4 = pair(engine, night.id, players[0], players[1])
        with pytest.raises(CourtUnavailable):
            engine.admin.assign_match(night.id, admin.id, p3.id, p4.id, 1)

    def test_unknown_court(self, engine, setup):
        night, admin, (p1, p2, _) = setup
        with pytest.raises(NotFound):
            engine.admin.assign_match(night.id, admin.id, p1.id, p2.id, 99)


class TestPlayersStillOnCourt:
    """Players whose partnership dissolved mid-match stay booked until that match ends."""

    @pytest.fixture
    def repaired(self, session: Session, engine):
        night = make_night(session, court_labels=["1", "2"], auto=True)
        a, b, c, d, e, f = make_players(session, 6)
        check_in_all(engine, night.id, [a, b, c, d])
        pair(engine, night.id, a, b)
        pair(engine, night.id, c, d)
        (first,) = _active_matches(session, night.id)

        engine.remove_partnership(night.id, a.id)
        check_in_all(engine, night.id, [e, f])
        ae = pair(engine, night.id, a, e)
        bf = pair(engine, night.id, b, f)
        return {"night": night, "first": first, "ae": ae, "bf": bf, "players": (a, b, c, d, e, f)}

    def test_repaired_players_not_allocated_a_second_court(self, session: Session, engine, repaired):
        night = repaired["night"]
        active = _active_matches(session, night.id)
        assert [m.id for m in active] == [repaired["first"].id]
        assert engine.create_matches_now(night.id).matches == []
        assert engine.get_queue_snapshot(night.id)["waiting"] == []

    def test_repaired_players_allocated_once_first_match_ends(self, session: Session, engine, repaired):
        night = repaired["night"]
        admin = make_admin(session)
        engine.admin.override_score(night.id, admin.id, repaired["first"].id, team1_score=15, team2_score=9)

        (match,) = _active_matches(session, night.id)
        assert set(match.partnership_ids) == {repaired["ae"].id, repaired["bf"].id}

    def test_manual_assign_rejects_player_on_court(self, session: Session, engine, repaired):
        night = repaired["night"]
        admin = make_admin(session)
        with pytest.raises(PartnershipBusy, match="still on court"):
            engine.admin.assign_match(night.id, admin.id, repaired["ae"].id, repaired["bf"].id, 2)
        assert len(_active_matches(session, night.id)) == 1
