"""rating engine schema

Revision ID: 0001_rating_engine
Revises: 
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa

revision = "0001_rating_engine"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    # play_history (match records written by the game service)
    op.create_table(
        "play_history",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Text, nullable=False),
        sa.Column("variant_id", sa.Text, nullable=False),
        sa.Column("status", sa.Text, nullable=False),
        sa.Column("played_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("opponent_user_id", sa.Text, nullable=True),
        sa.Column("opponent_model_id", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("status in ('win','loss','draw')", name="ck_play_history_status"),
        sa.CheckConstraint("(opponent_user_id IS NULL) <> (opponent_model_id IS NULL)", name="ck_play_history_one_opponent"),
    )
    op.create_index("ix_play_history_user", "play_history", ["user_id"])
    op.create_index("ix_play_history_opponent_user", "play_history", ["opponent_user_id"])

    # player_ratings
    op.create_table(
        "player_ratings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Text, nullable=False),
        sa.Column("variant_id", sa.Text, nullable=False),
        sa.Column("rating", sa.Integer, nullable=False, server_default="1200"),
        sa.Column("games_played", sa.Integer, nullable=False, server_default="0"),
        sa.Column("wins", sa.Integer, nullable=False, server_default="0"),
        sa.Column("losses", sa.Integer, nullable=False, server_default="0"),
        sa.Column("draws", sa.Integer, nullable=False, server_default="0"),
        sa.Column("peak_rating", sa.Integer, nullable=False, server_default="1200"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "variant_id", name="uq_player_ratings_user_variant"),
        sa.CheckConstraint("rating >= 100", name="ck_player_ratings_floor"),
        sa.CheckConstraint("peak_rating >= rating", name="ck_player_ratings_peak"),
        sa.CheckConstraint("games_played = wins + losses + draws", name="ck_player_ratings_counters"),
    )
    op.create_index("ix_player_ratings_rating", "player_ratings", ["rating"])

    # rating_history; (user_id, play_history_id) is the settlement idempotency key
    op.create_table(
        "rating_history",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Text, nullable=False),
        sa.Column("variant_id", sa.Text, nullable=False),
        sa.Column("play_history_id", sa.Integer, nullable=False),
        sa.Column("old_rating", sa.Integer, nullable=False),
        sa.Column("new_rating", sa.Integer, nullable=False),
        sa.Column("rating_change", sa.Integer, nullable=False),
        sa.Column("opponent_rating", sa.Integer, nullable=False),
        sa.Column("game_result", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "play_history_id", name="uq_rating_history_user_play_history"),
        sa.CheckConstraint("game_result in ('win','loss','draw')", name="ck_rating_history_result"),
    )
    op.create_index("ix_rating_history_user_created", "rating_history", ["user_id", "created_at"])
    op.create_index("ix_rating_history_play_history", "rating_history", ["play_history_id"])

    # ai_opponent_ratings
    op.create_table(
        "ai_opponent_ratings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("opponent_model_id", sa.Text, nullable=False),
        sa.Column("variant_id", sa.Text, nullable=False),
        sa.Column("rating", sa.Integer, nullable=False, server_default="1400"),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("opponent_model_id", "variant_id", name="uq_ai_opponent_ratings_model_variant"),
    )

def downgrade():
    op.drop_table("ai_opponent_ratings")
    op.drop_index("ix_rating_history_play_history", table_name="rating_history")
    op.drop_index("ix_rating_history_user_created", table_name="rating_history")
    op.drop_table("rating_history")
    op.drop_index("ix_player_ratings_rating", table_name="player_ratings")
    op.drop_table("player_ratings")
    op.drop_index("ix_play_history_opponent_user", table_name="play_history")
    op.drop_index("ix_play_history_user", table_name="play_history")
    op.drop_table("play_history")
