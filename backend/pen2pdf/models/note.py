"""
Pen2PDF Backend: Saved Note SQLAlchemy Model
==============================================

What:  ORM model representing the `saved_notes` table (the notes library).
How:   Inherits from DeclarativeBase; Alembic reads this for migrations.
Who:   LibraryService for CRUD operations.

Table Design:
    - UUID primary key, generated server-side or in Python
    - original_files: names of the uploaded source files, JSONB array of strings
    - generated_notes: the Markdown produced by the notes-generation task
    - model_used: the model that actually served the generation, as returned
      by the fallback layer (not the one the user asked for)

    Index on created_at DESC: the library view lists newest notes first.
"""

import uuid
from datetime import datetime, timezone
from typing import List

from sqlalchemy import Index, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from pen2pdf.database import Base


class SavedNote(Base):
    """A generated study note saved to the library by the user."""

    __tablename__ = "saved_notes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )

    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    original_files: Mapped[List[str]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        server_default=text("'[]'::jsonb"),
        comment="Names of the files the notes were generated from",
    )

    generated_notes: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )

    model_used: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="",
        server_default=text("''"),
        comment="Model that served the generation",
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
        Index("idx_saved_notes_created_at", created_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<SavedNote(id={self.id}, title='{self.title}', model_used='{self.model_used}')>"
