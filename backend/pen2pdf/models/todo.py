"""
Pen2PDF Backend: Todo Card SQLAlchemy Model
=============================================

What:  ORM model for the `todo_cards` table. A card has a title and an
       ordered list of sub-todos stored inline as JSONB:
           {"id": str, "text": str, "completed": bool, "createdAt": ISO str}
Who:   TodoService.

Sub-todos live and die with their card, so they are not a separate table.
As with every JSONB list here, mutations assign a new list.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy import Index, String, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from pen2pdf.database import Base


class TodoCard(Base):
    __tablename__ = "todo_cards"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    sub_todos: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        server_default=text("'[]'::jsonb"),
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_todo_cards_created_at", created_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<TodoCard(id={self.id}, title='{self.title}', sub_todos={len(self.sub_todos or [])})>"
