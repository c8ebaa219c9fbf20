import pytest

from shqip_guessr.src.results import LOST, PERFECT, rank_for_score, summarize_game, verdict_for_distance
from shqip_guessr.src.schemas import SavedGame


@pytest.mark.parametrize("score,label", [
    (25000, "PERFECT"),
    (24999, "LEGEND"),
    (22500, "LEGEND"),
    (18750, "MASTER"),
    (12500, "EXPLORER"),
    (6250, "TRAVELER"),
    (6249, "LOST"),
    (0, "LOST"),
])
def test_rank_tiers(score, label):
    assert rank_for_score(score, 25000).label == label


def test_rank_with_no_max_is_lost():
    assert rank_for_score(0, 0) is LOST


def test_summary_without_saved_game():
    summary = summarize_game(None)
    assert summary.total_score == 0
    assert summary.max_possible == 25000
    assert summary.rank is LOST
    assert summary.rounds_played == 0


def test_summary_uses_saved_round_count():
    game = SavedGame(total_rounds=3, current_round_index=2, total_score=15000, rounds=[])
    summary = summarize_game(game)
    assert summary.max_possible == 15000
    assert summary.rank is PERFECT


@pytest.mark.parametrize("km,verdict", [
    (3, "Unbelievable! Spot on!"),
    (30, "Amazing accuracy!"),
    (150, "Great guess!"),
    (500, "Not too bad."),
    (2000, "Right continent, wrong country."),
    (9000, "At least it was on the correct planet."),
])
def test_verdicts(km, verdict):
    assert verdict_for_distance(km) == verdict
