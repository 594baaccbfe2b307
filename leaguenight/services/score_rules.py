"""
Game score validation and parsing for rally-scored doubles games.

A game is played to 15, win by 2. Once the trailing side reaches 13 the game
can only end on an exact two-point margin (deuce rule):

  15-13 → valid
  15-14 → invalid (margin 1)
  16-14 → valid
  17-13 → invalid (loser ≥ 13, margin must be exactly 2)
  14-0  → invalid (winner below 15)

Desk-style entry accepts "15-13", "15 - 13", "15:13" or {"display": "15-13"}.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from leaguenight.services.errors import InvalidScore

WINNING_SCORE = 15
MIN_MARGIN = 2
DEUCE_THRESHOLD = 13

_SCORE_RE = re.compile(r"^\s*(\d+)\s*[-:]\s*(\d+)\s*$")


@dataclass(frozen=True)
class GameScore:
    team1: int
    team2: int

    @property
    def winner_side(self) -> int:
        return 1 if self.team1 > self.team2 else 2

    @property
    def margin(self) -> int:
        return abs(self.team1 - self.team2)

    @property
    def display(self) -> str:
        return f"{self.team1}-{self.team2}"


def check_score(score1: int, score2: int) -> Tuple[bool, Optional[str]]:
    """
    Apply the validity rule without raising.

    Returns:
        (is_valid, reason_if_not)
    """
    if isinstance(score1, bool) or isinstance(score2, bool):
        return False, "Scores must be whole numbers"
    if not isinstance(score1, int) or not isinstance(score2, int):
        return False, "Scores must be whole numbers"
    if score1 < 0 or score2 < 0:
        return False, "Scores must be valid positive numbers"
    if score1 == score2:
        return False, "Game cannot end in a tie"

    high = max(score1, score2)
    low = min(score1, score2)
    margin = high - low

    if high < WINNING_SCORE:
        return False, f"Winning score must be at least {WINNING_SCORE} points"
    if margin < MIN_MARGIN:
        return False, f"Must win by at least {MIN_MARGIN} points"
    if low >= DEUCE_THRESHOLD and margin != MIN_MARGIN:
        return False, f"When opponent has {DEUCE_THRESHOLD}+ points, must win by exactly {MIN_MARGIN}"
    return True, None


def is_valid_score(score1: int, score2: int) -> bool:
    return check_score(score1, score2)[0]


def validate_score(score1: int, score2: int) -> GameScore:
    """Return a GameScore or raise InvalidScore with the rule that failed."""
    ok, reason = check_score(score1, score2)
    if not ok:
        raise InvalidScore(reason)
    return GameScore(team1=score1, team2=score2)


def parse_score(raw: Any) -> GameScore:
    """Parse a desk-entered score string (or {"display": ...}) and validate it."""
    if isinstance(raw, dict):
        raw = raw.get("display") or raw.get("score") or ""
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidScore("Score is required, e.g. '15-13'")

    m = _SCORE_RE.match(raw)
    if not m:
        raise InvalidScore(f"Cannot parse score '{raw}'. Expected format like '15-13'")
    return validate_score(int(m.group(1)), int(m.group(2)))
