"""
Pen2PDF Backend: Notes Library Routes
=======================================

What:  CRUD for saved study notes under /api/notes.
Who:   The Notes library page. A note is saved after the user names a
       generated note; the library never calls a model itself.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pen2pdf.database import get_db_session
from pen2pdf.schemas.common import ErrorResponse, SuccessResponse
from pen2pdf.schemas.note import (
    NoteCreate,
    NoteListResponse,
    NoteOut,
    NoteResponse,
    NoteUpdate,
)
from pen2pdf.services.library_service import library_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notes", tags=["Notes"])

_NOT_FOUND = {404: {"description": "Note not found", "model": ErrorResponse}}


@router.get("", response_model=NoteListResponse, summary="List saved notes, newest first")
async def list_notes(db: AsyncSession = Depends(get_db_session)) -> NoteListResponse:
    notes = await library_service.list_notes(db)
    return NoteListResponse(data=[NoteOut.model_validate(n) for n in notes])


@router.post("", status_code=201, response_model=NoteResponse, summary="Save a generated note")
async def create_note(
    body: NoteCreate,
    db: AsyncSession = Depends(get_db_session),
) -> NoteResponse:
    note = await library_service.create_note(db, body)
    return NoteResponse(data=NoteOut.model_validate(note))


@router.get("/{note_id}", response_model=NoteResponse, responses=_NOT_FOUND, summary="Get a saved note")
async def get_note(
    note_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> NoteResponse:
    note = await library_service.get_note(db, note_id)
    return NoteResponse(data=NoteOut.model_validate(note))


@router.put("/{note_id}", response_model=NoteResponse, responses=_NOT_FOUND, summary="Rename or edit a saved note")
async def update_note(
    note_id: UUID,
    body: NoteUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> NoteResponse:
    note = await library_service.update_note(db, note_id, body)
    return NoteResponse(data=NoteOut.model_validate(note))


@router.delete("/{note_id}", response_model=SuccessResponse, responses=_NOT_FOUND, summary="Delete a saved note")
async def delete_note(
    note_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse:
    await library_service.delete_note(db, note_id)
    return SuccessResponse(message="Note deleted")
