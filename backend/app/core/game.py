from enum import Enum


class VariantId(str, Enum):
    CHESS = "chess"
    SHOGI = "shogi"
    XIANGQI = "xiangqi"
    JUNGLE = "jungle"


class GameResult(str, Enum):
    WIN = "win"
    LOSS = "loss"
    DRAW = "draw"

    def complement(self) -> "GameResult":
        if self is GameResult.WIN:
            return GameResult.LOSS
        if self is GameResult.LOSS:
            return GameResult.WIN
        return GameResult.DRAW


class OpponentModelId(str, Enum):
    GPT_4O = "gpt-4o"
    GEMINI_25_FLASH = "gemini-2.5-flash"


ALL_VARIANT_IDS = [v.value for v in VariantId]
ALL_GAME_RESULTS = [r.value for r in GameResult]
ALL_OPPONENT_MODEL_IDS = [m.value for m in OpponentModelId]
