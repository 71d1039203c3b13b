"""
Pen2PDF Backend: Notes Library Schemas
========================================

What:  API contract for /api/notes (the saved study notes library).
How:   Separate from the SQLAlchemy model so the wire names (camelCase) and
       validation rules evolve independently of the table.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from pen2pdf.schemas.common import CamelModel


class NoteCreate(CamelModel):
    """
    Body of POST /api/notes, sent after the user names a generated note.

    Example:
        {
            "title": "Signals - Week 3",
            "originalFiles": ["week3.pdf"],
            "generatedNotes": "# Title ...",
            "modelUsed": "gemini-2.5-flash"
        }
    """

    title: str = Field(min_length=1, max_length=255)
    original_files: List[str] = Field(default_factory=list)
    generated_notes: str = Field(min_length=1)
    model_used: str = Field(default="", max_length=100)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title must not be blank")
        return v


class NoteUpdate(CamelModel):
    """Partial update; omitted fields are left unchanged."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    generated_notes: Optional[str] = None


class NoteOut(CamelModel):
    id: uuid.UUID
    title: str
    original_files: List[str]
    generated_notes: str
    model_used: str
    created_at: datetime
    updated_at: datetime


class NoteResponse(CamelModel):
    success: bool = True
    data: NoteOut


class NoteListResponse(CamelModel):
    success: bool = True
    data: List[NoteOut]
