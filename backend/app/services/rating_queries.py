from __future__ import annotations

from app.core.errors import SettlementValidationError
from app.core.game import VariantId
from app.schemas.rating import PlayerRatingOut, RankTierOut, RatingHistoryOut
from app.services.elo import get_rank_tier
from app.services.rating_store import RatingStore


def _validate_variant(variant_id: str) -> str:
    try:
        return VariantId(variant_id).value
    except ValueError:
        raise SettlementValidationError(f"invalid variant: {variant_id!r}")


def _rating_out(row) -> PlayerRatingOut:
    tier = get_rank_tier(row.rating)
    return PlayerRatingOut(
        variant_id=row.variant_id,
        rating=row.rating,
        games_played=row.games_played,
        wins=row.wins,
        losses=row.losses,
        draws=row.draws,
        peak_rating=row.peak_rating,
        tier=RankTierOut(name=tier.name, color=tier.color, min_rating=tier.min_rating),
    )


class RatingQueryService:
    """Read-only projections for the UI. Reads may trail concurrent settlements."""

    def __init__(self, store: RatingStore):
        self.store = store

    def get_player_ratings(self, user_id: str) -> list[PlayerRatingOut]:
        return [_rating_out(r) for r in self.store.list_ratings(user_id)]

    def get_player_rating(self, user_id: str, variant_id: str) -> PlayerRatingOut:
        variant = _validate_variant(variant_id)
        row = self.store.get_rating(user_id, variant)
        if row is None:
            with self.store.transaction() as tx:
                row = tx.get_or_create_rating(user_id, variant)
        return _rating_out(row)

    def get_rating_history(self, user_id: str, variant_id: str | None = None) -> list[RatingHistoryOut]:
        variant = _validate_variant(variant_id) if variant_id is not None else None
        return [
            RatingHistoryOut(
                variant_id=h.variant_id,
                play_history_id=h.play_history_id,
                old_rating=h.old_rating,
                new_rating=h.new_rating,
                rating_change=h.rating_change,
                opponent_rating=h.opponent_rating,
                game_result=h.game_result,
                created_at=h.created_at,
            )
            for h in self.store.list_history(user_id, variant)
        ]
