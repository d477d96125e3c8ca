"""initial consensus schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create items, votes, engagement and snapshot tables."""
    op.create_table(
        "content_item",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("author_id", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("trust_level", sa.SmallInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_content_item_author_created", "content_item", ["author_id", "created_at"]
    )
    op.create_index("ix_content_item_trust_level", "content_item", ["trust_level"])

    op.create_table(
        "vote_record",
        sa.Column("item_id", sa.String(length=64), nullable=False),
        sa.Column("voter_id", sa.Text(), nullable=False),
        sa.Column("vote_type", sa.String(length=8), nullable=False),
        sa.Column("weight", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "vote_type IN ('up', 'down', 'report')", name="ck_vote_record_type"
        ),
        sa.ForeignKeyConstraint(["item_id"], ["content_item.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("item_id", "voter_id"),
    )
    op.create_index("ix_vote_record_item_id", "vote_record", ["item_id"])

    op.create_table(
        "comment",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("item_id", sa.String(length=64), nullable=False),
        sa.Column("author_id", sa.Text(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["item_id"], ["content_item.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_comment_item_id", "comment", ["item_id"])

    op.create_table(
        "saved_item",
        sa.Column("identity_id", sa.Text(), nullable=False),
        sa.Column("item_id", sa.String(length=64), nullable=False),
        sa.Column("saved_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["item_id"], ["content_item.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("identity_id", "item_id"),
    )

    op.create_table(
        "moderation_snapshot",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("items_checked", sa.Integer(), nullable=False),
        sa.Column("items_flagged", sa.Integer(), nullable=False),
        sa.Column("items_hidden", sa.Integer(), nullable=False),
        sa.Column("items_demoted", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "metrics_snapshot",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total_items", sa.Integer(), nullable=False),
        sa.Column("hidden_items", sa.Integer(), nullable=False),
        sa.Column("total_votes_up", sa.Float(), nullable=False),
        sa.Column("total_votes_down", sa.Float(), nullable=False),
        sa.Column("total_reports", sa.Float(), nullable=False),
        sa.Column("total_comments", sa.Integer(), nullable=False),
        sa.Column("total_saved_items", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    """Drop every table created by this revision."""
    op.drop_table("metrics_snapshot")
    op.drop_table("moderation_snapshot")
    op.drop_table("saved_item")
    op.drop_index("ix_comment_item_id", table_name="comment")
    op.drop_table("comment")
    op.drop_index("ix_vote_record_item_id", table_name="vote_record")
    op.drop_table("vote_record")
    op.drop_index("ix_content_item_trust_level", table_name="content_item")
    op.drop_index("ix_content_item_author_created", table_name="content_item")
    op.drop_table("content_item")
