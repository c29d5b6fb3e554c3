from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_current_user_id, get_rating_queries
from app.core.errors import SettlementValidationError
from app.schemas.rating import PlayerRatingDetailOut, PlayerRatingsOut, RatingHistoryListOut
from app.services.rating_queries import RatingQueryService

router = APIRouter()

@router.get("", response_model=PlayerRatingsOut)
def list_ratings(
    user_id: str = Depends(get_current_user_id),
    queries: RatingQueryService = Depends(get_rating_queries),
):
    return PlayerRatingsOut(ratings=queries.get_player_ratings(user_id))

@router.get("/history", response_model=RatingHistoryListOut)
def rating_history(
    user_id: str = Depends(get_current_user_id),
    queries: RatingQueryService = Depends(get_rating_queries),
):
    return RatingHistoryListOut(history=queries.get_rating_history(user_id))

@router.get("/history/{variant}", response_model=RatingHistoryListOut)
def rating_history_for_variant(
    variant: str,
    user_id: str = Depends(get_current_user_id),
    queries: RatingQueryService = Depends(get_rating_queries),
):
    try:
        rows = queries.get_rating_history(user_id, variant)
    except SettlementValidationError:
        raise HTTPException(400, "Invalid variant")
    return RatingHistoryListOut(history=rows)

@router.get("/{variant}", response_model=PlayerRatingDetailOut)
def rating_for_variant(
    variant: str,
    user_id: str = Depends(get_current_user_id),
    queries: RatingQueryService = Depends(get_rating_queries),
):
    try:
        row = queries.get_player_rating(user_id, variant)
    except SettlementValidationError:
        raise HTTPException(400, "Invalid variant")
    return PlayerRatingDetailOut(rating=row)
