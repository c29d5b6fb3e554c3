from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_current_user_id, get_settlement, get_store
from app.core.errors import DuplicateSettlementError, SettlementValidationError
from app.schemas.rating import (
    PlayHistoryCreatedOut,
    PlayHistoryIn,
    PlayHistoryListOut,
    PlayHistoryOut,
    PvpHistoryRowOut,
    PvpSettleIn,
    PvpSettlementOut,
    RatingChangeOut,
)
from app.services.rating_store import RatingStore
from app.services.settlement import AiOpponent, SettlementCoordinator

router = APIRouter()


def _play_history_out(record) -> PlayHistoryOut:
    return PlayHistoryOut(
        id=record.id,
        user_id=record.user_id,
        variant_id=record.variant_id,
        status=record.status,
        played_at=record.played_at,
        opponent_user_id=record.opponent_user_id,
        opponent_model_id=record.opponent_model_id,
    )


def _pvp_row_out(h) -> PvpHistoryRowOut:
    return PvpHistoryRowOut(
        user_id=h.user_id,
        play_history_id=h.play_history_id,
        old_rating=h.old_rating,
        new_rating=h.new_rating,
        rating_change=h.rating_change,
        opponent_rating=h.opponent_rating,
        game_result=h.game_result,
        created_at=h.created_at,
    )


@router.get("", response_model=PlayHistoryListOut)
def list_play_history(
    user_id: str = Depends(get_current_user_id),
    store: RatingStore = Depends(get_store),
):
    return PlayHistoryListOut(play_history=[_play_history_out(r) for r in store.list_play_history(user_id)])


@router.post("", response_model=PlayHistoryCreatedOut, status_code=201)
def create_play_history(
    payload: PlayHistoryIn,
    user_id: str = Depends(get_current_user_id),
    store: RatingStore = Depends(get_store),
    settlement: SettlementCoordinator = Depends(get_settlement),
):
    # PvP records come from the match service; clients only report games against AI.
    if payload.opponent_user_id is not None:
        raise HTTPException(403, "PvP results cannot be submitted by clients")

    # The match record and its rating change commit together or not at all.
    try:
        with store.transaction() as tx:
            record = tx.record_play_history(
                user_id=user_id,
                variant_id=payload.variant_id.value,
                status=payload.status,
                played_at=payload.played_at,
                opponent_model_id=payload.opponent_model_id.value,
            )
            change = settlement.settle_single_player(
                user_id,
                payload.variant_id.value,
                record.id,
                payload.status,
                AiOpponent(payload.opponent_model_id.value),
                tx=tx,
            )
            out = _play_history_out(record)
    except SettlementValidationError as exc:
        raise HTTPException(400, str(exc))
    except DuplicateSettlementError:
        raise HTTPException(409, "Game result already recorded")

    return PlayHistoryCreatedOut(
        play_history=out,
        rating=RatingChangeOut(
            old_rating=change.old_rating,
            new_rating=change.new_rating,
            rating_change=change.rating_change,
            opponent_rating=change.opponent_rating,
        ),
    )


@router.post("/pvp", response_model=PvpSettlementOut)
def settle_pvp(
    payload: PvpSettleIn,
    user_id: str = Depends(get_current_user_id),
    store: RatingStore = Depends(get_store),
    settlement: SettlementCoordinator = Depends(get_settlement),
):
    try:
        with store.transaction() as tx:
            record = tx.get_play_history(payload.play_history_id)
            if record is None:
                raise HTTPException(404, "Play history not found")
            if user_id not in (record.user_id, record.opponent_user_id):
                raise HTTPException(403, "Not a participant of this game")
            if record.opponent_user_id is None:
                raise HTTPException(400, "Not a PvP game")

            result = settlement.settle_pvp(
                record.user_id,
                record.opponent_user_id,
                record.variant_id,
                record.id,
                record.status,
                tx=tx,
            )
    except SettlementValidationError as exc:
        raise HTTPException(400, str(exc))

    return PvpSettlementOut(
        history_for_user1=_pvp_row_out(result.history_for_user1),
        history_for_user2=_pvp_row_out(result.history_for_user2),
    )
