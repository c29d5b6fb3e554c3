from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base

class PlayHistory(Base):
    __tablename__ = "play_history"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(sa.Text, nullable=False)
    variant_id: Mapped[str] = mapped_column(sa.Text, nullable=False)
    status: Mapped[str] = mapped_column(sa.Text, nullable=False)
    played_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)

    opponent_user_id: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    opponent_model_id: Mapped[str | None] = mapped_column(sa.Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())

    __table_args__ = (
        sa.CheckConstraint("status in ('win','loss','draw')", name="ck_play_history_status"),
        sa.CheckConstraint(
            "(opponent_user_id IS NULL) <> (opponent_model_id IS NULL)",
            name="ck_play_history_one_opponent",
        ),
        sa.Index("ix_play_history_user", "user_id"),
        sa.Index("ix_play_history_opponent_user", "opponent_user_id"),
    )
