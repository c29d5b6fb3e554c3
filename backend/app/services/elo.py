import math
from dataclasses import dataclass

from app.core.errors import ConfigurationError
from app.core.game import GameResult

RATING_FLOOR = 100

@dataclass(frozen=True)
class RankTier:
    name: str
    color: str
    min_rating: int

@dataclass
class RatingCalculation:
    new_rating: int
    rating_change: int
    expected_score: float
    k_factor: int

# Must stay sorted by min_rating, highest first. Checked at import.
RANK_TIERS: tuple[RankTier, ...] = (
    RankTier("Master", "gold", 2000),
    RankTier("Expert", "purple", 1600),
    RankTier("Advanced", "blue", 1200),
    RankTier("Intermediate", "green", 800),
    RankTier("Beginner", "gray", 0),
)

def validate_rank_tiers(tiers) -> None:
    if not tiers:
        raise ConfigurationError("rank tier table is empty")
    for hi, lo in zip(tiers, tiers[1:]):
        if hi.min_rating <= lo.min_rating:
            raise ConfigurationError(
                f"rank tiers must be sorted by min_rating descending: "
                f"{hi.name}({hi.min_rating}) before {lo.name}({lo.min_rating})"
            )

def expected_score(r_a: float, r_b: float) -> float:
    return 1.0 / (1.0 + 10 ** ((r_b - r_a) / 400.0))

def actual_score(result: GameResult) -> float:
    match result:
        case GameResult.WIN:
            return 1.0
        case GameResult.DRAW:
            return 0.5
        case GameResult.LOSS:
            return 0.0
        case _:
            raise ValueError(f"Unhandled GameResult: {result!r}")

def k_factor(games_played: int) -> int:
    if games_played < 30:
        return 40  # provisional
    if games_played < 100:
        return 24  # settling
    return 16  # established

def _round_half_up(x: float) -> int:
    # round() is banker's rounding; ratings round .5 towards +inf.
    return math.floor(x + 0.5)

def calculate_new_rating(
    current: int,
    opponent: int,
    result: GameResult,
    games_played: int,
    floor: int = RATING_FLOOR,
) -> RatingCalculation:
    """
    New = max(floor, current + round(K * (actual - expected))).

    K comes from the games played *before* this one. rating_change is taken
    from the clamped value, so it differs from the raw delta at the floor.
    """
    e = expected_score(current, opponent)
    k = k_factor(games_played)
    delta = _round_half_up(k * (actual_score(result) - e))
    new_rating = max(floor, current + delta)
    return RatingCalculation(
        new_rating=new_rating,
        rating_change=new_rating - current,
        expected_score=e,
        k_factor=k,
    )

def get_rank_tier(rating: int, tiers=RANK_TIERS) -> RankTier:
    for tier in tiers:
        if tier.min_rating <= rating:
            return tier
    return tiers[-1]

validate_rank_tiers(RANK_TIERS)
