"""
Read-only queue view for a night: who is waiting (in fairness order), who is
on court, court usage, and anything that needs an organizer's attention.

Waiting partnerships are listed by effective games and then by confirmation
time so the view is stable between refreshes; the randomized tiebreak only
applies when the allocator actually pairs them.
"""
from typing import Dict, List

from leaguenight.repository import LeagueNightRepository
from leaguenight.services.check_in_registry import matches_needing_attention
from leaguenight.services.court_allocator import court_label, effective_games
from leaguenight.services.match_lifecycle import describe_matches, partnership_name


def queue_snapshot(repo: LeagueNightRepository, instance_id: int) -> Dict:
    instance = repo.get_instance(instance_id)

    waiting = repo.waiting_partnerships(instance_id)
    games = repo.games_played_tonight(instance_id)
    effective = effective_games(games, waiting)
    waiting = sorted(waiting, key=lambda p: (effective[p.id], p.confirmed_at, p.id))

    active = repo.active_matches(instance_id)
    partnered = {pid for p in repo.active_partnerships(instance_id) for pid in p.player_ids}
    present = repo.active_check_ins(instance_id)
    players = repo.players_by_id(
        [c.player_id for c in present] + [pid for p in waiting for pid in p.player_ids]
    )

    busy = {m.court_number for m in active}
    free_courts = [c for c in instance.courts if c["number"] not in busy]
    roster = {c["number"] for c in instance.courts}
    courts_in_use = len(busy & roster)
    # Courts removed from the roster while a match was still on them
    removed_in_use = [m.court_label for m in active if m.court_number not in roster]

    waiting_rows: List[Dict] = []
    for rank, p in enumerate(waiting, start=1):
        waiting_rows.append({
            "rank": rank,
            "partnership_id": p.id,
            "name": partnership_name(p, players),
            "player_ids": list(p.player_ids),
            "games_played": games.get(p.id, 0),
            "effective_games": effective[p.id],
            "confirmed_at": p.confirmed_at,
        })

    attention = matches_needing_attention(repo, instance_id)
    attention_rows = []
    if attention:
        described = {row["id"]: row for row in describe_matches(repo, [a["match"] for a in attention])}
        for a in attention:
            attention_rows.append({**described[a["match"].id], "missing_player_ids": a["missing_player_ids"]})

    return {
        "instance_id": instance_id,
        "status": instance.status,
        "auto_assignment_enabled": instance.auto_assignment_enabled,
        "waiting": waiting_rows,
        "playing": describe_matches(repo, active),
        "unpartnered_players": [
            {
                "player_id": c.player_id,
                "name": players[c.player_id].display_name if c.player_id in players else f"Player {c.player_id}",
            }
            for c in present
            if c.player_id not in partnered
        ],
        "needs_attention": attention_rows,
        "total_courts": len(instance.courts),
        "courts_in_use": courts_in_use,
        "courts_free": len(free_courts),
        "removed_courts_in_use": removed_in_use,
        "free_courts": [court_label(c) for c in free_courts],
        "next_match_possible": len(waiting) >= 2 and len(free_courts) > 0,
    }
