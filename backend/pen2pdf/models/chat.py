"""
Pen2PDF Backend: Chat Session SQLAlchemy Model
================================================

What:  ORM model for the `chat_sessions` table: the one conversation the
       assistant keeps, stored as a single row.
How:   Turns are kept in a JSONB array in insertion order; that order defines
       the context window. Each turn is a dict:
           {"role": "user"|"assistant", "content": str,
            "model": str|None, "timestamp": ISO 8601 str}
Who:   SqlChatSessionStore (services/session_store.py).

JSONB mutation:
    SQLAlchemy does not track in-place changes to a JSON list. Code that
    appends a turn must assign a new list (session.messages = [...]).
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import String, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from pen2pdf.database import Base


class ChatSession(Base):
    """A persisted conversation. Owned turns are never shared across sessions."""

    __tablename__ = "chat_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )

    messages: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        server_default=text("'[]'::jsonb"),
        comment="Ordered conversation turns",
    )

    # Model the user last picked in the chat UI
    current_model: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        default=None,
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

    def __repr__(self) -> str:
        return (
            f"<ChatSession(id={self.id}, turns={len(self.messages or [])}, "
            f"current_model='{self.current_model}')>"
        )
