from fastapi import APIRouter
from app.api.routes import play_history, ratings

router = APIRouter()
router.include_router(ratings.router, prefix="/ratings", tags=["ratings"])
router.include_router(play_history.router, prefix="/play-history", tags=["play-history"])
