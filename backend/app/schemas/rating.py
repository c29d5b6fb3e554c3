from datetime import datetime
from pydantic import BaseModel, Field, model_validator

from app.core.game import GameResult, OpponentModelId, VariantId


class RankTierOut(BaseModel):
    name: str
    color: str
    min_rating: int


class PlayerRatingOut(BaseModel):
    variant_id: str
    rating: int
    games_played: int
    wins: int
    losses: int
    draws: int
    peak_rating: int
    tier: RankTierOut


class PlayerRatingsOut(BaseModel):
    ratings: list[PlayerRatingOut]


class PlayerRatingDetailOut(BaseModel):
    rating: PlayerRatingOut


class RatingHistoryOut(BaseModel):
    variant_id: str
    play_history_id: int
    old_rating: int
    new_rating: int
    rating_change: int
    opponent_rating: int
    game_result: str
    created_at: datetime


class RatingHistoryListOut(BaseModel):
    history: list[RatingHistoryOut]


class PlayHistoryIn(BaseModel):
    variant_id: VariantId
    status: GameResult
    played_at: datetime
    opponent_user_id: str | None = Field(default=None, min_length=1)
    opponent_model_id: OpponentModelId | None = None

    @model_validator(mode="after")
    def _one_opponent(self):
        has_user = self.opponent_user_id is not None
        has_model = self.opponent_model_id is not None
        if not has_user and not has_model:
            raise ValueError("Provide either opponent_user_id or opponent_model_id")
        if has_user and has_model:
            raise ValueError("Specify only one opponent type")
        return self


class PlayHistoryOut(BaseModel):
    id: int
    user_id: str
    variant_id: str
    status: str
    played_at: datetime
    opponent_user_id: str | None
    opponent_model_id: str | None


class PlayHistoryListOut(BaseModel):
    play_history: list[PlayHistoryOut]


class RatingChangeOut(BaseModel):
    old_rating: int
    new_rating: int
    rating_change: int
    opponent_rating: int


class PlayHistoryCreatedOut(BaseModel):
    play_history: PlayHistoryOut
    rating: RatingChangeOut


class PvpSettleIn(BaseModel):
    # Opponent, variant and result are read from the stored match record.
    play_history_id: int = Field(gt=0)


class PvpHistoryRowOut(BaseModel):
    user_id: str
    play_history_id: int
    old_rating: int
    new_rating: int
    rating_change: int
    opponent_rating: int
    game_result: str
    created_at: datetime


class PvpSettlementOut(BaseModel):
    history_for_user1: PvpHistoryRowOut
    history_for_user2: PvpHistoryRowOut
