"""Error taxonomy of the rating engine.

Storage failures that are not listed here (``sqlalchemy.exc.SQLAlchemyError``)
propagate unchanged; the transaction that raised them is rolled back.
"""


class RatingEngineError(Exception):
    pass


class ConfigurationError(RatingEngineError):
    """The static rank-tier table is unusable. Raised at import time."""


class SettlementValidationError(RatingEngineError):
    """Input rejected before any write (self-play, bad result, bad opponent)."""


class ConflictError(RatingEngineError):
    """A unique constraint rejected an insert.

    Raised by the store at the insert site so callers branch on a type
    instead of inspecting driver error codes.
    """

    def __init__(self, table: str, key: dict):
        self.table = table
        self.key = key
        super().__init__(f"duplicate key in {table}: {key}")


class DuplicateSettlementError(RatingEngineError):
    """A single-player settlement reused a play_history_id."""

    def __init__(self, user_id: str, play_history_id: int):
        self.user_id = user_id
        self.play_history_id = play_history_id
        super().__init__(f"play_history_id={play_history_id} already settled for user {user_id}")


class SettlementInconsistencyError(RatingEngineError):
    """PvP history rows for one match are half finalized."""
