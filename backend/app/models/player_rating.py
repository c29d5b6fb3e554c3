from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base

class PlayerRating(Base):
    __tablename__ = "player_ratings"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    # Users live in the auth service; the id is stored as text without a foreign key.
    user_id: Mapped[str] = mapped_column(sa.Text, nullable=False)
    variant_id: Mapped[str] = mapped_column(sa.Text, nullable=False)

    rating: Mapped[int] = mapped_column(sa.Integer, nullable=False, server_default="1200")
    games_played: Mapped[int] = mapped_column(sa.Integer, nullable=False, server_default="0")
    wins: Mapped[int] = mapped_column(sa.Integer, nullable=False, server_default="0")
    losses: Mapped[int] = mapped_column(sa.Integer, nullable=False, server_default="0")
    draws: Mapped[int] = mapped_column(sa.Integer, nullable=False, server_default="0")
    peak_rating: Mapped[int] = mapped_column(sa.Integer, nullable=False, server_default="1200")

    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())
    updated_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())

    __table_args__ = (
        sa.UniqueConstraint("user_id", "variant_id", name="uq_player_ratings_user_variant"),
        sa.CheckConstraint("rating >= 100", name="ck_player_ratings_floor"),
        sa.CheckConstraint("peak_rating >= rating", name="ck_player_ratings_peak"),
        sa.CheckConstraint("games_played = wins + losses + draws", name="ck_player_ratings_counters"),
        sa.Index("ix_player_ratings_rating", "rating"),
    )
