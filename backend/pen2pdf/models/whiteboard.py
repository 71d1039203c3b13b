"""
Pen2PDF Backend: Whiteboard SQLAlchemy Model
==============================================

What:  ORM model for the `whiteboard_states` table: a single row holding the
       canvas elements exactly as the frontend serialized them.
Who:   WhiteboardService.

The backend never interprets `elements`; it stores and returns the JSON.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, List

from sqlalchemy import text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from pen2pdf.database import Base


class WhiteboardState(Base):
    __tablename__ = "whiteboard_states"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )

    elements: Mapped[List[Any]] = mapped_column(
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

    def __repr__(self) -> str:
        return f"<WhiteboardState(id={self.id}, elements={len(self.elements or [])})>"
