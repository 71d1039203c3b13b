"""
Pen2PDF Backend: Library Service
==================================

What:  CRUD for saved study notes (/api/notes).
How:   Stateless; receives the request's AsyncSession on every call. Commit
       happens in get_db_session, so methods only flush.
Who:   routes/library.py.

The library stores notes; it never calls a model. generated_notes and
model_used arrive from the client exactly as /notesGenerate returned them.
"""

import logging
from datetime import datetime, timezone
from typing import List
from uuid import UUID

from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pen2pdf.exceptions import DatabaseError, NotFoundError
from pen2pdf.models.note import SavedNote
from pen2pdf.schemas.note import NoteCreate, NoteUpdate

logger = logging.getLogger(__name__)


class LibraryService:
    """
    Saved-notes operations.

    Error Handling Strategy:
        NotFoundError propagates as-is (404). SQLAlchemy failures are logged
        and wrapped in DatabaseError so driver details never reach the client.
    """

    async def list_notes(self, db: AsyncSession) -> List[SavedNote]:
        """All saved notes, newest first (uses idx_saved_notes_created_at)."""
        try:
            result = await db.execute(select(SavedNote).order_by(desc(SavedNote.created_at)))
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing saved notes: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve notes. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def get_note(self, db: AsyncSession, note_id: UUID) -> SavedNote:
        try:
            result = await db.execute(select(SavedNote).where(SavedNote.id == note_id))
            note = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching note %s: %s", note_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the note. Please try again.",
                context={"note_id": str(note_id)},
            )

        if note is None:
            raise NotFoundError(resource="note", resource_id=str(note_id))
        return note

    async def create_note(self, db: AsyncSession, payload: NoteCreate) -> SavedNote:
        note = SavedNote(
            title=payload.title,
            original_files=list(payload.original_files),
            generated_notes=payload.generated_notes,
            model_used=payload.model_used,
        )
        db.add(note)
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error saving note: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not save the note. Please try again.",
                context={"error_type": type(e).__name__},
            )
        logger.info("Note saved: %s (%s, model=%s)", note.id, note.title, note.model_used or "-")
        return note

    async def update_note(self, db: AsyncSession, note_id: UUID, payload: NoteUpdate) -> SavedNote:
        note = await self.get_note(db, note_id)

        if payload.title is not None:
            note.title = payload.title.strip() or note.title
        if payload.generated_notes is not None:
            note.generated_notes = payload.generated_notes
        note.updated_at = datetime.now(timezone.utc)

        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error updating note %s: %s", note_id, str(e))
            raise DatabaseError(
                message="Could not update the note. Please try again.",
                context={"note_id": str(note_id)},
            )
        logger.info("Note updated: %s", note_id)
        return note

    async def delete_note(self, db: AsyncSession, note_id: UUID) -> None:
        note = await self.get_note(db, note_id)
        try:
            await db.delete(note)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error deleting note %s: %s", note_id, str(e))
            raise DatabaseError(
                message="Could not delete the note. Please try again.",
                context={"note_id": str(note_id)},
            )
        logger.info("Note deleted: %s", note_id)


library_service = LibraryService()
