from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base

class RatingHistory(Base):
    __tablename__ = "rating_history"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(sa.Text, nullable=False)
    variant_id: Mapped[str] = mapped_column(sa.Text, nullable=False)
    play_history_id: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    # 0/0/0 marks a placeholder reserving the (user_id, play_history_id) slot.
    old_rating: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    new_rating: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    rating_change: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    opponent_rating: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    game_result: Mapped[str] = mapped_column(sa.Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())

    __table_args__ = (
        sa.UniqueConstraint("user_id", "play_history_id", name="uq_rating_history_user_play_history"),
        sa.CheckConstraint("game_result in ('win','loss','draw')", name="ck_rating_history_result"),
        sa.Index("ix_rating_history_user_created", "user_id", "created_at"),
        sa.Index("ix_rating_history_play_history", "play_history_id"),
    )
