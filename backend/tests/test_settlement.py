import logging

import pytest
import sqlalchemy as sa

from app.core.errors import (
    DuplicateSettlementError,
    SettlementInconsistencyError,
    SettlementValidationError,
)
from app.core.game import GameResult
from app.models import AiOpponentRating, PlayerRating, RatingHistory
from app.services.rating_store import RatingTransaction
from app.services.settlement import AiOpponent, HumanOpponent


def _count(store, model) -> int:
    with store.session_factory() as session:
        return session.execute(sa.select(sa.func.count()).select_from(model)).scalar_one()


# --- single player -----------------------------------------------------------

def test_single_player_win_against_ai_uses_model_default(coordinator, store):
    out = coordinator.settle_single_player("alice", "chess", 1, GameResult.WIN, AiOpponent("gpt-4o"))

    # 1200 vs 1400 at K=40: round(40 * (1 - 0.2403)) = 30
    assert out.old_rating == 1200
    assert out.opponent_rating == 1400
    assert out.rating_change == 30
    assert out.new_rating == 1230

    row = store.get_rating("alice", "chess")
    assert (row.rating, row.games_played, row.wins, row.peak_rating) == (1230, 1, 1, 1230)

    history = store.find_history("alice", 1)
    assert (history.old_rating, history.new_rating, history.rating_change) == (1200, 1230, 30)
    assert history.opponent_rating == 1400
    assert history.game_result == "win"
    assert history.variant_id == "chess"


def test_single_player_uses_configured_ai_rating(coordinator, store):
    with store.session_factory() as session, session.begin():
        session.add(AiOpponentRating(opponent_model_id="gemini-2.5-flash", variant_id="xiangqi", rating=1200))

    out = coordinator.settle_single_player("alice", "xiangqi", 1, GameResult.LOSS, AiOpponent("gemini-2.5-flash"))
    assert out.opponent_rating == 1200
    assert out.rating_change == -20
    assert out.new_rating == 1180


def test_single_player_against_human_reads_opponent_without_touching_counters(coordinator, store):
    out = coordinator.settle_single_player("alice", "shogi", 1, GameResult.DRAW, HumanOpponent("bob"))

    assert out.opponent_rating == 1200
    assert out.rating_change == 0
    bob = store.get_rating("bob", "shogi")
    assert bob is not None
    assert bob.games_played == 0
    alice = store.get_rating("alice", "shogi")
    assert (alice.games_played, alice.draws) == (1, 1)


def test_single_player_k_factor_uses_games_before_the_update(coordinator, store):
    with store.transaction() as tx:
        row = tx.get_or_create_rating("alice", "chess")
        tx.session.execute(
            sa.update(PlayerRating)
            .where(PlayerRating.id == row.id)
            .values(games_played=29, wins=29)
        )

    out = coordinator.settle_single_player("alice", "chess", 1, GameResult.WIN, HumanOpponent("bob"))
    assert out.rating_change == 20  # K=40 because 29 games were played before this one

    out = coordinator.settle_single_player("alice", "chess", 2, GameResult.WIN, HumanOpponent("carol"))
    # 1220 vs 1200 at K=24: round(24 * (1 - 0.5288)) = 11
    assert out.rating_change == 11


def test_single_player_duplicate_play_history_id_fails_and_rolls_back(coordinator, store):
    coordinator.settle_single_player("alice", "chess", 1, GameResult.WIN, AiOpponent("gpt-4o"))
    before = store.get_rating("alice", "chess")

    with pytest.raises(DuplicateSettlementError) as err:
        coordinator.settle_single_player("alice", "chess", 1, GameResult.WIN, AiOpponent("gpt-4o"))
    assert err.value.play_history_id == 1

    after = store.get_rating("alice", "chess")
    assert (after.rating, after.games_played, after.wins) == (before.rating, before.games_played, before.wins)
    assert _count(store, RatingHistory) == 1


def test_single_player_failure_leaves_no_partial_state(coordinator, store, monkeypatch):
    def boom(self, **kwargs):
        raise RuntimeError("storage down")

    monkeypatch.setattr(RatingTransaction, "insert_history", boom)

    with pytest.raises(RuntimeError):
        coordinator.settle_single_player("alice", "chess", 1, GameResult.WIN, HumanOpponent("bob"))

    assert store.get_rating("alice", "chess") is None
    assert store.get_rating("bob", "chess") is None
    assert _count(store, RatingHistory) == 0


def test_single_player_floor(coordinator, store):
    with store.transaction() as tx:
        for uid in ("alice", "bob"):
            row = tx.get_or_create_rating(uid, "chess")
            tx.session.execute(sa.update(PlayerRating).where(PlayerRating.id == row.id).values(rating=110))

    out = coordinator.settle_single_player("alice", "chess", 1, GameResult.LOSS, HumanOpponent("bob"))
    # -20 would land at 90; the change is re-derived from the clamped rating
    assert out.old_rating == 110
    assert out.new_rating == 100
    assert out.rating_change == -10
    assert store.get_rating("alice", "chess").losses == 1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"result": "resign", "opponent": AiOpponent("gpt-4o")},
        {"result": GameResult.WIN, "opponent": HumanOpponent("alice")},
        {"result": GameResult.WIN, "opponent": "gpt-4o"},
        {"result": GameResult.WIN, "opponent": AiOpponent("gpt-4o"), "variant_id": "checkers"},
    ],
)
def test_single_player_validation_happens_before_writes(coordinator, store, kwargs):
    args = {"user_id": "alice", "variant_id": "chess", "play_history_id": 1}
    args.update(kwargs)
    with pytest.raises(SettlementValidationError):
        coordinator.settle_single_player(**args)
    assert _count(store, PlayerRating) == 0
    assert _count(store, RatingHistory) == 0


def test_single_player_joins_caller_transaction(coordinator, store):
    with pytest.raises(RuntimeError):
        with store.transaction() as tx:
            coordinator.settle_single_player("alice", "chess", 1, GameResult.WIN, AiOpponent("gpt-4o"), tx=tx)
            raise RuntimeError("match record rejected")

    assert store.get_rating("alice", "chess") is None
    assert _count(store, RatingHistory) == 0


# --- pvp ---------------------------------------------------------------------

def test_pvp_settles_both_sides(coordinator, store):
    out = coordinator.settle_pvp("alice", "bob", "chess", 10, GameResult.WIN)

    h1, h2 = out.history_for_user1, out.history_for_user2
    assert (h1.user_id, h1.old_rating, h1.new_rating, h1.rating_change, h1.opponent_rating) == ("alice", 1200, 1220, 20, 1200)
    assert (h2.user_id, h2.old_rating, h2.new_rating, h2.rating_change, h2.opponent_rating) == ("bob", 1200, 1180, -20, 1200)
    assert (h1.game_result, h2.game_result) == ("win", "loss")

    alice = store.get_rating("alice", "chess")
    bob = store.get_rating("bob", "chess")
    assert (alice.rating, alice.games_played, alice.wins) == (1220, 1, 1)
    assert (bob.rating, bob.games_played, bob.losses) == (1180, 1, 1)


def test_pvp_uses_pre_update_ratings_for_both_sides(coordinator, store):
    with store.transaction() as tx:
        a = tx.get_or_create_rating("alice", "chess")
        tx.session.execute(sa.update(PlayerRating).where(PlayerRating.id == a.id).values(rating=1600, peak_rating=1600))

    out = coordinator.settle_pvp("alice", "bob", "chess", 10, GameResult.LOSS)
    h1, h2 = out.history_for_user1, out.history_for_user2
    assert h1.opponent_rating == 1200
    assert h2.opponent_rating == 1600
    assert h2.rating_change == 36
    assert h1.rating_change == -36
    assert store.get_rating("alice", "chess").peak_rating == 1600


def test_pvp_draw_complement_is_draw(coordinator):
    out = coordinator.settle_pvp("alice", "bob", "jungle", 10, GameResult.DRAW)
    assert out.history_for_user1.game_result == "draw"
    assert out.history_for_user2.game_result == "draw"


def test_pvp_retry_is_a_noop(coordinator, store):
    first = coordinator.settle_pvp("alice", "bob", "chess", 10, GameResult.WIN)
    second = coordinator.settle_pvp("alice", "bob", "chess", 10, GameResult.WIN)

    assert first == second
    assert store.get_rating("alice", "chess").games_played == 1
    assert store.get_rating("bob", "chess").games_played == 1
    assert _count(store, RatingHistory) == 2


def test_pvp_retry_from_the_other_side_returns_the_same_rows(coordinator, store):
    first = coordinator.settle_pvp("alice", "bob", "chess", 10, GameResult.WIN)
    mirrored = coordinator.settle_pvp("bob", "alice", "chess", 10, GameResult.LOSS)

    assert mirrored.history_for_user1 == first.history_for_user2
    assert mirrored.history_for_user2 == first.history_for_user1
    assert store.get_rating("alice", "chess").games_played == 1


def test_pvp_rejects_self_play_before_storage(coordinator, store, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("storage touched")

    monkeypatch.setattr(store, "transaction", fail)
    with pytest.raises(SettlementValidationError):
        coordinator.settle_pvp("alice", "alice", "chess", 10, GameResult.WIN)


def test_pvp_rejects_unknown_result(coordinator, store):
    with pytest.raises(SettlementValidationError):
        coordinator.settle_pvp("alice", "bob", "chess", 10, "abandoned")
    assert _count(store, RatingHistory) == 0


def test_pvp_mixed_state_is_fatal_and_rolls_back(coordinator, store):
    # A single-player settlement already used this play_history_id for alice.
    coordinator.settle_single_player("alice", "chess", 10, GameResult.WIN, AiOpponent("gpt-4o"))
    before = store.get_rating("alice", "chess")

    with pytest.raises(SettlementInconsistencyError):
        coordinator.settle_pvp("alice", "bob", "chess", 10, GameResult.WIN)

    assert store.find_history("bob", 10) is None
    assert store.get_rating("bob", "chess") is None
    assert store.get_rating("alice", "chess").games_played == before.games_played


def test_pvp_failure_mid_settlement_releases_the_reservation(coordinator, store, monkeypatch):
    original = RatingTransaction.apply_rating_update
    calls = {"n": 0}

    def flaky(self, rating_id, new_rating, result):
        calls["n"] += 1
        if calls["n"] == 2:
            raise RuntimeError("lost connection")
        return original(self, rating_id, new_rating, result)

    monkeypatch.setattr(RatingTransaction, "apply_rating_update", flaky)
    with pytest.raises(RuntimeError):
        coordinator.settle_pvp("alice", "bob", "chess", 10, GameResult.WIN)

    assert _count(store, RatingHistory) == 0
    monkeypatch.setattr(RatingTransaction, "apply_rating_update", original)

    out = coordinator.settle_pvp("alice", "bob", "chess", 10, GameResult.WIN)
    assert out.history_for_user1.rating_change == 20
    assert store.get_rating("alice", "chess").games_played == 1


def test_settlement_log_level_follows_transaction_owner(coordinator, store, caplog):
    caplog.set_level(logging.DEBUG, logger="app.services.settlement")

    coordinator.settle_single_player("alice", "chess", 1, GameResult.WIN, AiOpponent("gpt-4o"))
    assert [r.levelno for r in caplog.records if "settled user=alice" in r.getMessage()] == [logging.INFO]

    caplog.clear()
    with store.transaction() as tx:
        coordinator.settle_single_player("alice", "chess", 2, GameResult.WIN, AiOpponent("gpt-4o"), tx=tx)
        coordinator.settle_pvp("alice", "bob", "chess", 3, GameResult.DRAW, tx=tx)

    messages = [(r.levelno, r.getMessage()) for r in caplog.records]
    assert not any("settled" in m for _, m in messages)
    computed = [lvl for lvl, m in messages if m.startswith("computed")]
    assert computed == [logging.DEBUG, logging.DEBUG]
