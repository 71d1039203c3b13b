"""
Pen2PDF Backend: Whiteboard Routes
====================================

GET, PUT and DELETE on /api/whiteboard (one board per deployment).
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pen2pdf.database import get_db_session
from pen2pdf.schemas.whiteboard import WhiteboardOut, WhiteboardResponse, WhiteboardSave
from pen2pdf.services.whiteboard_service import whiteboard_service

router = APIRouter(prefix="/api/whiteboard", tags=["Whiteboard"])


@router.get("", response_model=WhiteboardResponse)
async def get_whiteboard(db: AsyncSession = Depends(get_db_session)) -> WhiteboardResponse:
    board = await whiteboard_service.get_or_create(db)
    return WhiteboardResponse(data=WhiteboardOut.model_validate(board))


@router.put("", response_model=WhiteboardResponse)
async def save_whiteboard(
    body: WhiteboardSave,
    db: AsyncSession = Depends(get_db_session),
) -> WhiteboardResponse:
    board = await whiteboard_service.save(db, body.elements)
    return WhiteboardResponse(data=WhiteboardOut.model_validate(board), message="Whiteboard saved")


@router.delete("", response_model=WhiteboardResponse)
async def clear_whiteboard(db: AsyncSession = Depends(get_db_session)) -> WhiteboardResponse:
    board = await whiteboard_service.clear(db)
    return WhiteboardResponse(data=WhiteboardOut.model_validate(board), message="Whiteboard cleared")
