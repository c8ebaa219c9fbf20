"""
End-of-game summary: rank tiers and per-guess verdicts.
"""

from dataclasses import dataclass
from typing import Optional

from shqip_guessr.src.geo import MAX_ROUND_SCORE
from shqip_guessr.src.game_session import TOTAL_ROUNDS
from shqip_guessr.src.schemas import SavedGame


@dataclass(frozen=True)
class Rank:
    label: str
    emoji: str


@dataclass(frozen=True)
class GameSummary:
    total_score: int
    max_possible: int
    rank: Rank
    rounds_played: int


# (minimum fraction of the max score, rank), checked top down
RANK_TIERS = (
    (0.9, Rank("LEGEND", "🏆")),
    (0.75, Rank("MASTER", "💠")),
    (0.5, Rank("EXPLORER", "🌍")),
    (0.25, Rank("TRAVELER", "🎒")),
)
PERFECT = Rank("PERFECT", "👑")
LOST = Rank("LOST", "💀")


def rank_for_score(score: int, max_score: int) -> Rank:
    if max_score <= 0:
        return LOST
    fraction = score / max_score
    if fraction >= 1:
        return PERFECT
    for threshold, rank in RANK_TIERS:
        if fraction >= threshold:
            return rank
    return LOST


def summarize_game(game: Optional[SavedGame]) -> GameSummary:
    """Summary for the results screen; no saved game reads as an empty default game."""
    if game is None:
        max_possible = TOTAL_ROUNDS * MAX_ROUND_SCORE
        return GameSummary(0, max_possible, rank_for_score(0, max_possible), 0)
    max_possible = game.total_rounds * MAX_ROUND_SCORE
    return GameSummary(
        total_score=game.total_score,
        max_possible=max_possible,
        rank=rank_for_score(game.total_score, max_possible),
        rounds_played=len(game.rounds),
    )


def verdict_for_distance(distance_km: float) -> str:
    if distance_km < 10:
        return "Unbelievable! Spot on!"
    if distance_km < 50:
        return "Amazing accuracy!"
    if distance_km < 200:
        return "Great guess!"
    if distance_km < 1000:
        return "Not too bad."
    if distance_km < 3000:
        return "Right continent, wrong country."
    return "At least it was on the correct planet."
