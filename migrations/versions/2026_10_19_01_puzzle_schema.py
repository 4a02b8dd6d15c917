"""create puzzle, event and play tables

Revision ID: 2026_10_19_01
Revises: 
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "2026_10_19_01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("username", sa.String(length=80), nullable=True, unique=True),
        sa.Column("email", sa.String(length=120), nullable=False, unique=True),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_completed_date", sa.Date(), nullable=True),
        sa.Column("total_plays", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("perfect_games", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "puzzles",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("puzzle_number", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("target_year", sa.Integer(), nullable=False),
        sa.Column("events", sa.JSON(), nullable=False),
        sa.Column("seed", sa.BigInteger(), nullable=True),
        sa.Column("composition_source", sa.String(length=20), nullable=False, server_default="legacy"),
        sa.Column("quality_score", sa.Float(), nullable=True),
        sa.Column("quality", sa.JSON(), nullable=True),
        sa.Column("play_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("avg_guesses", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_puzzles_puzzle_number", "puzzles", ["puzzle_number"], unique=True)
    op.create_index("ix_puzzles_date", "puzzles", ["date"], unique=True)

    op.create_table(
        "order_puzzles",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("puzzle_number", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("seed", sa.BigInteger(), nullable=False),
        sa.Column("difficulty", sa.String(length=20), nullable=True),
        sa.Column("events", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_order_puzzles_puzzle_number", "order_puzzles", ["puzzle_number"], unique=True)
    op.create_index("ix_order_puzzles_date", "order_puzzles", ["date"], unique=True)

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("classic_puzzle_id", sa.Integer(), sa.ForeignKey("puzzles.id"), nullable=True),
        sa.Column("order_puzzle_id", sa.Integer(), sa.ForeignKey("order_puzzles.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_events_year", "events", ["year"])
    op.create_index("ix_events_classic_puzzle_id", "events", ["classic_puzzle_id"])
    op.create_index("ix_events_order_puzzle_id", "events", ["order_puzzle_id"])

    op.create_table(
        "plays",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("puzzle_id", sa.Integer(), sa.ForeignKey("puzzles.id"), nullable=False),
        sa.Column("ranges", sa.JSON(), nullable=False),
        sa.Column("total_score", sa.Integer(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("user_id", "puzzle_id", name="uq_plays_user_puzzle"),
    )
    op.create_index("ix_plays_user_id", "plays", ["user_id"])
    op.create_index("ix_plays_puzzle_id", "plays", ["puzzle_id"])

    op.create_table(
        "order_plays",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("puzzle_id", sa.Integer(), sa.ForeignKey("order_puzzles.id"), nullable=False),
        sa.Column("ordering", sa.JSON(), nullable=False),
        sa.Column("attempts", sa.JSON(), nullable=False),
        sa.Column("hints", sa.JSON(), nullable=False),
        sa.Column("score", sa.JSON(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("user_id", "puzzle_id", name="uq_order_plays_user_puzzle"),
    )
    op.create_index("ix_order_plays_user_id", "order_plays", ["user_id"])
    op.create_index("ix_order_plays_puzzle_id", "order_plays", ["puzzle_id"])


def downgrade():
    op.drop_table("order_plays")
    op.drop_table("plays")
    op.drop_table("events")
    op.drop_table("order_puzzles")
    op.drop_table("puzzles")
    op.drop_table("users")
