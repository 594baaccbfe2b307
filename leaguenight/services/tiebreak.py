"""
Tiebreak strategies for the fairness queue.

Partnerships with equal effective games are interchangeable as far as
fairness goes; the strategy only decides who meets whom. Each strategy takes
the tied group (already ordered by partnership id) plus the allocation
context and returns a new ordering.
"""
import os
import random
from typing import Dict, List, Optional, Protocol

from leaguenight.models.partnership import ConfirmedPartnership

TIEBREAK_RANDOM = "random"
TIEBREAK_ROUND_ROBIN = "round_robin"
TIEBREAK_SKILL = "skill"

SKILL_RATINGS = {
    "beginner": 2.5,
    "novice": 2.5,
    "intermediate": 3.5,
    "advanced": 4.5,
    "expert": 5.0,
    "pro": 5.5,
}
DEFAULT_SKILL_RATING = SKILL_RATINGS["intermediate"]


def skill_rating(skill_level: Optional[str]) -> float:
    """Map a free-text skill level ("Advanced", "3.5") to a number."""
    if not skill_level or not skill_level.strip():
        return DEFAULT_SKILL_RATING
    value = skill_level.strip().lower()
    if value in SKILL_RATINGS:
        return SKILL_RATINGS[value]
    try:
        return float(value)
    except ValueError:
        return DEFAULT_SKILL_RATING


class TiebreakContext:
    """Read-only data a strategy may consult."""

    def __init__(
        self,
        last_played_at: Optional[Dict[int, object]] = None,
        partnership_skill: Optional[Dict[int, float]] = None,
    ):
        self.last_played_at = last_played_at or {}
        self.partnership_skill = partnership_skill or {}


class TiebreakStrategy(Protocol):
    name: str

    def order(self, tied: List[ConfirmedPartnership], context: TiebreakContext) -> List[ConfirmedPartnership]:
        ...


class RandomTiebreak:
    """Shuffle ties for variety. Inject a seeded Random for reproducible runs."""

    name = TIEBREAK_RANDOM

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def order(self, tied, context):
        shuffled = list(tied)
        self.rng.shuffle(shuffled)
        return shuffled


class RoundRobinTiebreak:
    """Longest-resting first: never played, then oldest last completion."""

    name = TIEBREAK_ROUND_ROBIN

    def order(self, tied, context):
        def key(p: ConfirmedPartnership):
            last = context.last_played_at.get(p.id)
            return (last is not None, last or 0, p.id)

        return sorted(tied, key=key)


class SkillTiebreak:
    """Strongest pairs first so consecutive entries meet similar levels."""

    name = TIEBREAK_SKILL

    def order(self, tied, context):
        return sorted(
            tied,
            key=lambda p: (-context.partnership_skill.get(p.id, DEFAULT_SKILL_RATING * 2), p.id),
        )


def build_tiebreak(name: Optional[str] = None, seed: Optional[int] = None) -> TiebreakStrategy:
    """Build a strategy from its name; falls back to TIEBREAK_STRATEGY / TIEBREAK_SEED env vars."""
    name = (name or os.getenv("TIEBREAK_STRATEGY", TIEBREAK_RANDOM)).strip().lower()
    if seed is None and os.getenv("TIEBREAK_SEED"):
        seed = int(os.getenv("TIEBREAK_SEED"))

    if name == TIEBREAK_ROUND_ROBIN:
        return RoundRobinTiebreak()
    if name == TIEBREAK_SKILL:
        return SkillTiebreak()
    if name == TIEBREAK_RANDOM:
        return RandomTiebreak(random.Random(seed))
    raise ValueError(f"Unknown tiebreak strategy: {name}")
