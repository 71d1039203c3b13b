"""Create workspace tables

Revision ID: 001
Revises: None
Create Date: 2025-09-02 00:00:00.000000+00:00

What:  Creates chat_sessions, saved_notes, todo_cards and whiteboard_states.
How:   PostgreSQL UUID primary keys, JSONB for the list-valued columns,
       TIMESTAMP WITH TIME ZONE everywhere.

Rollback: downgrade() drops all four tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _timestamp_column(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def _jsonb_list_column(name: str, comment: str) -> sa.Column:
    return sa.Column(
        name,
        postgresql.JSONB(),
        server_default=sa.text("'[]'::jsonb"),
        nullable=False,
        comment=comment,
    )


def upgrade() -> None:
    # ── Chat (single row: the assistant conversation) ─────────────────────
    op.create_table(
        "chat_sessions",
        _id_column(),
        _jsonb_list_column("messages", "Ordered turns: id, role, content, model, timestamp"),
        sa.Column(
            "current_model",
            sa.String(100),
            nullable=True,
            comment="Model the user last picked",
        ),
        _timestamp_column("created_at"),
        _timestamp_column("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )

    # ── Notes library ─────────────────────────────────────────────────────
    op.create_table(
        "saved_notes",
        _id_column(),
        sa.Column("title", sa.String(255), nullable=False),
        _jsonb_list_column("original_files", "Names of the files the notes were generated from"),
        sa.Column("generated_notes", sa.Text(), nullable=False),
        sa.Column(
            "model_used",
            sa.String(100),
            nullable=False,
            server_default=sa.text("''"),
            comment="Model that served the generation",
        ),
        _timestamp_column("created_at"),
        _timestamp_column("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    # Library view lists newest first
    op.create_index(
        "idx_saved_notes_created_at",
        "saved_notes",
        [sa.text("created_at DESC")],
    )

    # ── Todos ─────────────────────────────────────────────────────────────
    op.create_table(
        "todo_cards",
        _id_column(),
        sa.Column("title", sa.String(255), nullable=False),
        _jsonb_list_column("sub_todos", "Inline sub-todos: id, text, completed, createdAt"),
        _timestamp_column("created_at"),
        _timestamp_column("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_todo_cards_created_at",
        "todo_cards",
        [sa.text("created_at DESC")],
    )

    # ── Whiteboard (single row) ───────────────────────────────────────────
    op.create_table(
        "whiteboard_states",
        _id_column(),
        _jsonb_list_column("elements", "Canvas elements as serialized by the frontend"),
        _timestamp_column("created_at"),
        _timestamp_column("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("whiteboard_states")
    op.drop_index("idx_todo_cards_created_at", table_name="todo_cards")
    op.drop_table("todo_cards")
    op.drop_index("idx_saved_notes_created_at", table_name="saved_notes")
    op.drop_table("saved_notes")
    op.drop_table("chat_sessions")
