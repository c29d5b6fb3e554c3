"""
Persistence for player ratings, rating history and AI opponent ratings.

``RatingStore`` is built once at startup around a session factory. Reads can
go through it directly (each opens a short session). Every mutation goes
through ``RatingStore.transaction()``, which yields a ``RatingTransaction``
bound to a single database transaction: it commits when the block exits
normally and rolls back on any exception.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager, nullcontext
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import Settings, settings
from app.core.errors import ConflictError, SettlementInconsistencyError
from app.core.game import GameResult, OpponentModelId
from app.db.session import DEFERRED_BEGIN
from app.models import AiOpponentRating, PlayHistory, PlayerRating, RatingHistory

logger = logging.getLogger(__name__)

# Used when ai_opponent_ratings has no row for the (model, variant) pair.
DEFAULT_AI_RATINGS: dict[str, int] = {
    OpponentModelId.GEMINI_25_FLASH.value: 1500,
    OpponentModelId.GPT_4O.value: 1400,
}

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

_RESULT_COUNTERS = {
    GameResult.WIN: "wins",
    GameResult.LOSS: "losses",
    GameResult.DRAW: "draws",
}


def is_placeholder(row: RatingHistory) -> bool:
    return row.old_rating == 0 and row.new_rating == 0 and row.opponent_rating == 0


class RatingRepository:
    """Reads shared by the store and by a transaction."""

    def __init__(self, cfg: Settings):
        self.cfg = cfg

    def _session_scope(self):
        raise NotImplementedError

    def get_rating(self, user_id: str, variant_id: str, for_update: bool = False) -> PlayerRating | None:
        stmt = (
            sa.select(PlayerRating)
            .where(PlayerRating.user_id == user_id, PlayerRating.variant_id == variant_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        with self._session_scope() as session:
            return session.execute(stmt).scalar_one_or_none()

    def list_ratings(self, user_id: str) -> list[PlayerRating]:
        stmt = (
            sa.select(PlayerRating)
            .where(PlayerRating.user_id == user_id)
            .order_by(PlayerRating.variant_id)
        )
        with self._session_scope() as session:
            return list(session.execute(stmt).scalars().all())

    def get_ai_opponent_rating(self, opponent_model_id: str, variant_id: str) -> int:
        stmt = sa.select(AiOpponentRating.rating).where(
            AiOpponentRating.opponent_model_id == opponent_model_id,
            AiOpponentRating.variant_id == variant_id,
        )
        with self._session_scope() as session:
            rating = session.execute(stmt).scalar_one_or_none()
        if rating is not None:
            return int(rating)
        return DEFAULT_AI_RATINGS.get(opponent_model_id, self.cfg.AI_DEFAULT_RATING)

    def find_history(self, user_id: str, play_history_id: int) -> RatingHistory | None:
        stmt = (
            sa.select(RatingHistory)
            .where(RatingHistory.user_id == user_id, RatingHistory.play_history_id == play_history_id)
            .execution_options(populate_existing=True)
        )
        with self._session_scope() as session:
            return session.execute(stmt).scalar_one_or_none()

    def list_history(self, user_id: str, variant_id: str | None = None) -> list[RatingHistory]:
        where = [
            RatingHistory.user_id == user_id,
            sa.not_(sa.and_(
                RatingHistory.old_rating == 0,
                RatingHistory.new_rating == 0,
                RatingHistory.opponent_rating == 0,
            )),
        ]
        if variant_id is not None:
            where.append(RatingHistory.variant_id == variant_id)
        stmt = sa.select(RatingHistory).where(*where).order_by(RatingHistory.created_at, RatingHistory.id)
        with self._session_scope() as session:
            return list(session.execute(stmt).scalars().all())

    def get_play_history(self, play_history_id: int) -> PlayHistory | None:
        with self._session_scope() as session:
            return session.get(PlayHistory, play_history_id, populate_existing=True)

    def list_play_history(self, user_id: str) -> list[PlayHistory]:
        """Match records the user created, newest first."""
        stmt = (
            sa.select(PlayHistory)
            .where(PlayHistory.user_id == user_id)
            .order_by(PlayHistory.played_at.desc(), PlayHistory.id.desc())
        )
        with self._session_scope() as session:
            return list(session.execute(stmt).scalars().all())


class RatingTransaction(RatingRepository):
    """Repository bound to one open transaction. Obtain via ``RatingStore.transaction()``."""

    def __init__(self, session: Session, cfg: Settings):
        super().__init__(cfg)
        self.session = session

    def _session_scope(self):
        return nullcontext(self.session)

    def _insert(self, model, values: dict, key: dict) -> int:
        # SAVEPOINT so a unique violation leaves the outer transaction usable.
        try:
            with self.session.begin_nested():
                return self.session.execute(
                    sa.insert(model).values(**values).returning(model.id)
                ).scalar_one()
        except IntegrityError as exc:
            raise ConflictError(model.__tablename__, key) from exc

    def _insert_ignore(self, model, rows: list[dict], index_elements: list[str]) -> int:
        dialect = self.session.get_bind().dialect.name
        insert = _DIALECT_INSERTS.get(dialect)
        if insert is None:
            raise NotImplementedError(f"insert-or-ignore is not supported on {dialect}")
        stmt = insert(model.__table__).values(rows).on_conflict_do_nothing(index_elements=index_elements)
        return self.session.execute(stmt).rowcount

    def get_or_create_rating(self, user_id: str, variant_id: str, for_update: bool = False) -> PlayerRating:
        row = self.get_rating(user_id, variant_id, for_update=for_update)
        if row is not None:
            return row

        default = self.cfg.RATING_DEFAULT
        try:
            self._insert(
                PlayerRating,
                {
                    "user_id": user_id,
                    "variant_id": variant_id,
                    "rating": default,
                    "games_played": 0,
                    "wins": 0,
                    "losses": 0,
                    "draws": 0,
                    "peak_rating": default,
                },
                key={"user_id": user_id, "variant_id": variant_id},
            )
        except ConflictError:
            logger.info("player_ratings row for user=%s variant=%s created concurrently, re-reading", user_id, variant_id)

        row = self.get_rating(user_id, variant_id, for_update=for_update)
        if row is None:
            raise RuntimeError(f"player_ratings row for user={user_id} variant={variant_id} vanished")
        return row

    def apply_rating_update(self, rating_id: int, new_rating: int, result: GameResult) -> None:
        """Single UPDATE; counters and peak are computed by the database."""
        counter = _RESULT_COUNTERS[GameResult(result)]
        column = getattr(PlayerRating, counter)
        stmt = (
            sa.update(PlayerRating)
            .where(PlayerRating.id == rating_id)
            .values({
                PlayerRating.rating: new_rating,
                PlayerRating.games_played: PlayerRating.games_played + 1,
                column: column + 1,
                PlayerRating.peak_rating: sa.case(
                    (PlayerRating.peak_rating < new_rating, new_rating),
                    else_=PlayerRating.peak_rating,
                ),
                PlayerRating.updated_at: sa.func.now(),
            })
            .execution_options(synchronize_session=False)
        )
        updated = self.session.execute(stmt).rowcount
        if updated != 1:
            raise RuntimeError(f"player_ratings id={rating_id} not found")

    def insert_history(
        self,
        *,
        user_id: str,
        variant_id: str,
        play_history_id: int,
        old_rating: int,
        new_rating: int,
        rating_change: int,
        opponent_rating: int,
        game_result: GameResult,
    ) -> RatingHistory:
        history_id = self._insert(
            RatingHistory,
            {
                "user_id": user_id,
                "variant_id": variant_id,
                "play_history_id": play_history_id,
                "old_rating": old_rating,
                "new_rating": new_rating,
                "rating_change": rating_change,
                "opponent_rating": opponent_rating,
                "game_result": GameResult(game_result).value,
            },
            key={"user_id": user_id, "play_history_id": play_history_id},
        )
        return self.session.get(RatingHistory, history_id, populate_existing=True)

    def insert_history_if_absent(self, variant_id: str, play_history_id: int, results: dict[str, GameResult]) -> int:
        """Reserve one placeholder row per user; existing rows are left untouched."""
        rows = [
            {
                "user_id": user_id,
                "variant_id": variant_id,
                "play_history_id": play_history_id,
                "old_rating": 0,
                "new_rating": 0,
                "rating_change": 0,
                "opponent_rating": 0,
                "game_result": GameResult(result).value,
            }
            for user_id, result in sorted(results.items())
        ]
        return self._insert_ignore(RatingHistory, rows, index_elements=["user_id", "play_history_id"])

    def finalize_history(self, history_id: int, *, old_rating: int, new_rating: int, rating_change: int, opponent_rating: int) -> None:
        stmt = (
            sa.update(RatingHistory)
            .where(
                RatingHistory.id == history_id,
                RatingHistory.old_rating == 0,
                RatingHistory.new_rating == 0,
                RatingHistory.opponent_rating == 0,
            )
            .values(
                old_rating=old_rating,
                new_rating=new_rating,
                rating_change=rating_change,
                opponent_rating=opponent_rating,
            )
            .execution_options(synchronize_session=False)
        )
        if self.session.execute(stmt).rowcount != 1:
            raise SettlementInconsistencyError(f"rating_history id={history_id} is not a placeholder")

    def record_play_history(
        self,
        *,
        user_id: str,
        variant_id: str,
        status: GameResult,
        played_at: datetime,
        opponent_user_id: str | None = None,
        opponent_model_id: str | None = None,
    ) -> PlayHistory:
        row = PlayHistory(
            user_id=user_id,
            variant_id=variant_id,
            status=GameResult(status).value,
            played_at=played_at,
            opponent_user_id=opponent_user_id,
            opponent_model_id=opponent_model_id,
        )
        self.session.add(row)
        self.session.flush()
        return row


class RatingStore(RatingRepository):
    def __init__(self, session_factory: sessionmaker[Session], cfg: Settings = settings):
        super().__init__(cfg)
        self.session_factory = session_factory

    @contextmanager
    def _session_scope(self):
        with self.session_factory() as session:
            session.connection(execution_options={DEFERRED_BEGIN: True})
            yield session

    @contextmanager
    def transaction(self):
        with self.session_factory() as session:
            with session.begin():
                yield RatingTransaction(session, self.cfg)
