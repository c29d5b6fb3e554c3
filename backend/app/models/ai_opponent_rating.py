from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base

class AiOpponentRating(Base):
    __tablename__ = "ai_opponent_ratings"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    opponent_model_id: Mapped[str] = mapped_column(sa.Text, nullable=False)
    variant_id: Mapped[str] = mapped_column(sa.Text, nullable=False)

    rating: Mapped[int] = mapped_column(sa.Integer, nullable=False, server_default="1400")
    description: Mapped[str | None] = mapped_column(sa.Text, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())

    __table_args__ = (
        sa.UniqueConstraint("opponent_model_id", "variant_id", name="uq_ai_opponent_ratings_model_variant"),
    )
