from app.models.player_rating import PlayerRating
from app.models.rating_history import RatingHistory
from app.models.ai_opponent_rating import AiOpponentRating
from app.models.play_history import PlayHistory
