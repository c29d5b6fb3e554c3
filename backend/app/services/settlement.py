"""
Settlement of finished games into rating changes.

One call is one transaction: the opponent lookup, rating updates and rating
history rows either all commit or none do.

Single-player settlements are *not* idempotent. Reusing a ``play_history_id``
raises ``DuplicateSettlementError`` and nothing is written, so callers must not
retry a call that may already have committed.

PvP settlements are idempotent. Both history rows are reserved as placeholders
(old/new/opponent rating all 0) with an insert-or-ignore keyed on
(user_id, play_history_id). Whoever reserves them performs the rating math and
finalizes the rows; every other caller for the same match finds finalized rows
and returns them unchanged.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from app.core.config import Settings, settings
from app.core.errors import (
    ConflictError,
    DuplicateSettlementError,
    SettlementInconsistencyError,
    SettlementValidationError,
)
from app.core.game import GameResult, VariantId
from app.models import RatingHistory
from app.services.elo import calculate_new_rating
from app.services.rating_store import RatingStore, RatingTransaction, is_placeholder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HumanOpponent:
    user_id: str


@dataclass(frozen=True)
class AiOpponent:
    model_id: str


Opponent = HumanOpponent | AiOpponent


@dataclass(frozen=True)
class SettlementResult:
    old_rating: int
    new_rating: int
    rating_change: int
    opponent_rating: int


@dataclass(frozen=True)
class HistoryRecord:
    id: int
    user_id: str
    variant_id: str
    play_history_id: int
    old_rating: int
    new_rating: int
    rating_change: int
    opponent_rating: int
    game_result: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: RatingHistory) -> "HistoryRecord":
        return cls(
            id=row.id,
            user_id=row.user_id,
            variant_id=row.variant_id,
            play_history_id=row.play_history_id,
            old_rating=row.old_rating,
            new_rating=row.new_rating,
            rating_change=row.rating_change,
            opponent_rating=row.opponent_rating,
            game_result=row.game_result,
            created_at=row.created_at,
        )


@dataclass(frozen=True)
class PvpSettlement:
    history_for_user1: HistoryRecord
    history_for_user2: HistoryRecord


def _coerce_result(value) -> GameResult:
    try:
        return GameResult(value)
    except ValueError:
        raise SettlementValidationError(f"invalid game result: {value!r}")


def _coerce_variant(value) -> str:
    try:
        return VariantId(value).value
    except ValueError:
        raise SettlementValidationError(f"invalid variant: {value!r}")


class SettlementCoordinator:
    def __init__(self, store: RatingStore, cfg: Settings = settings):
        self.store = store
        self.cfg = cfg

    @contextmanager
    def _unit_of_work(self, tx: RatingTransaction | None):
        # A caller-supplied transaction is committed or rolled back by the caller.
        if tx is not None:
            yield tx
            return
        with self.store.transaction() as own:
            yield own

    def settle_single_player(
        self,
        user_id: str,
        variant_id: str,
        play_history_id: int,
        result: GameResult,
        opponent: Opponent,
        tx: RatingTransaction | None = None,
    ) -> SettlementResult:
        result = _coerce_result(result)
        variant = _coerce_variant(variant_id)
        if not isinstance(opponent, (HumanOpponent, AiOpponent)):
            raise SettlementValidationError("opponent must be a human user or an AI model")
        if isinstance(opponent, HumanOpponent) and opponent.user_id == user_id:
            raise SettlementValidationError("a player cannot be their own opponent")

        owns_tx = tx is None
        with self._unit_of_work(tx) as tx:
            if isinstance(opponent, AiOpponent):
                opponent_rating = tx.get_ai_opponent_rating(opponent.model_id, variant)
            else:
                opponent_rating = tx.get_or_create_rating(opponent.user_id, variant).rating

            current = tx.get_or_create_rating(user_id, variant, for_update=True)
            calc = calculate_new_rating(
                current.rating,
                opponent_rating,
                result,
                current.games_played,
                floor=self.cfg.RATING_FLOOR,
            )
            tx.apply_rating_update(current.id, calc.new_rating, result)
            try:
                tx.insert_history(
                    user_id=user_id,
                    variant_id=variant,
                    play_history_id=play_history_id,
                    old_rating=current.rating,
                    new_rating=calc.new_rating,
                    rating_change=calc.rating_change,
                    opponent_rating=opponent_rating,
                    game_result=result,
                )
            except ConflictError as exc:
                logger.warning("duplicate settlement user=%s play_history_id=%s", user_id, play_history_id)
                raise DuplicateSettlementError(user_id, play_history_id) from exc

        # Under a caller-owned transaction nothing has committed yet.
        log = logger.info if owns_tx else logger.debug
        log(
            "%s user=%s variant=%s play_history_id=%s result=%s rating %s -> %s (k=%s)",
            "settled" if owns_tx else "computed",
            user_id, variant, play_history_id, result.value, current.rating, calc.new_rating, calc.k_factor,
        )
        return SettlementResult(
            old_rating=current.rating,
            new_rating=calc.new_rating,
            rating_change=calc.rating_change,
            opponent_rating=opponent_rating,
        )

    def settle_pvp(
        self,
        user_id1: str,
        user_id2: str,
        variant_id: str,
        play_history_id: int,
        user1_result: GameResult,
        tx: RatingTransaction | None = None,
    ) -> PvpSettlement:
        if user_id1 == user_id2:
            raise SettlementValidationError("a player cannot be their own opponent")
        result1 = _coerce_result(user1_result)
        result2 = result1.complement()
        variant = _coerce_variant(variant_id)

        owns_tx = tx is None
        with self._unit_of_work(tx) as tx:
            tx.insert_history_if_absent(variant, play_history_id, {user_id1: result1, user_id2: result2})
            h1 = tx.find_history(user_id1, play_history_id)
            h2 = tx.find_history(user_id2, play_history_id)
            if h1 is None or h2 is None:
                raise SettlementInconsistencyError(
                    f"rating_history rows missing after reservation for play_history_id={play_history_id}"
                )

            pending1, pending2 = is_placeholder(h1), is_placeholder(h2)
            if not pending1 and not pending2:
                logger.info("pvp play_history_id=%s already settled, returning stored rows", play_history_id)
                return PvpSettlement(HistoryRecord.from_row(h1), HistoryRecord.from_row(h2))
            if pending1 != pending2:
                logger.error(
                    "pvp play_history_id=%s half settled (user1 placeholder=%s, user2 placeholder=%s)",
                    play_history_id, pending1, pending2,
                )
                raise SettlementInconsistencyError(
                    f"rating_history for play_history_id={play_history_id} is partially finalized"
                )

            # Lock rating rows in a fixed order so crossing matches cannot deadlock.
            ratings = {uid: tx.get_or_create_rating(uid, variant, for_update=True) for uid in sorted((user_id1, user_id2))}
            r1, r2 = ratings[user_id1], ratings[user_id2]
            old1, old2 = r1.rating, r2.rating

            c1 = calculate_new_rating(old1, old2, result1, r1.games_played, floor=self.cfg.RATING_FLOOR)
            c2 = calculate_new_rating(old2, old1, result2, r2.games_played, floor=self.cfg.RATING_FLOOR)

            tx.apply_rating_update(r1.id, c1.new_rating, result1)
            tx.apply_rating_update(r2.id, c2.new_rating, result2)
            tx.finalize_history(h1.id, old_rating=old1, new_rating=c1.new_rating, rating_change=c1.rating_change, opponent_rating=old2)
            tx.finalize_history(h2.id, old_rating=old2, new_rating=c2.new_rating, rating_change=c2.rating_change, opponent_rating=old1)

            settlement = PvpSettlement(
                HistoryRecord.from_row(tx.find_history(user_id1, play_history_id)),
                HistoryRecord.from_row(tx.find_history(user_id2, play_history_id)),
            )

        log = logger.info if owns_tx else logger.debug
        log(
            "%s pvp play_history_id=%s variant=%s %s %s -> %s, %s %s -> %s",
            "settled" if owns_tx else "computed",
            play_history_id, variant, user_id1, old1, c1.new_rating, user_id2, old2, c2.new_rating,
        )
        return settlement
