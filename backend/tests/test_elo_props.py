"""
Property-based tests for the rating calculator.
"""

import pytest
from hypothesis import given, settings, strategies as st

from app.core.game import GameResult
from app.services.elo import RATING_FLOOR, calculate_new_rating, expected_score, k_factor

rating_strategy = st.integers(min_value=RATING_FLOOR, max_value=3500)
games_strategy = st.integers(min_value=0, max_value=500)
result_strategy = st.sampled_from(list(GameResult))


@settings(max_examples=200)
@given(a=rating_strategy, b=rating_strategy)
def test_expected_scores_sum_to_one(a, b):
    assert expected_score(a, b) + expected_score(b, a) == pytest.approx(1.0, abs=1e-12)


@settings(max_examples=100)
@given(r=rating_strategy)
def test_expected_score_against_self_is_half(r):
    assert expected_score(r, r) == 0.5


@settings(max_examples=300)
@given(current=rating_strategy, opponent=rating_strategy, result=result_strategy, games=games_strategy)
def test_new_rating_respects_floor_and_change(current, opponent, result, games):
    r = calculate_new_rating(current, opponent, result, games)
    assert r.new_rating >= RATING_FLOOR
    assert r.new_rating - current == r.rating_change
    assert abs(r.rating_change) <= k_factor(games)


@settings(max_examples=200)
@given(current=rating_strategy, opponent=rating_strategy, games=games_strategy)
def test_result_ordering(current, opponent, games):
    win = calculate_new_rating(current, opponent, GameResult.WIN, games)
    draw = calculate_new_rating(current, opponent, GameResult.DRAW, games)
    loss = calculate_new_rating(current, opponent, GameResult.LOSS, games)
    assert win.rating_change >= 0
    assert loss.rating_change <= 0
    assert loss.new_rating <= draw.new_rating <= win.new_rating


@settings(max_examples=100)
@given(games=games_strategy)
def test_k_factor_never_increases_with_experience(games):
    assert k_factor(games + 1) <= k_factor(games)
