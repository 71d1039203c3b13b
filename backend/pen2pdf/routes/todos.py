"""
Pen2PDF Backend: Todo Routes
==============================

Todo cards and their sub-todos under /api/todos. Every mutation answers
with the whole card so the UI can replace it in place.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pen2pdf.database import get_db_session
from pen2pdf.schemas.common import SuccessResponse
from pen2pdf.schemas.todo import (
    SubTodoCreate,
    SubTodoUpdate,
    TodoCardCreate,
    TodoCardListResponse,
    TodoCardOut,
    TodoCardResponse,
    TodoCardUpdate,
)
from pen2pdf.services.todo_service import todo_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/todos", tags=["Todos"])


@router.get("", response_model=TodoCardListResponse)
async def list_cards(db: AsyncSession = Depends(get_db_session)) -> TodoCardListResponse:
    cards = await todo_service.list_cards(db)
    return TodoCardListResponse(data=[TodoCardOut.model_validate(c) for c in cards])


@router.post("", status_code=201, response_model=TodoCardResponse)
async def create_card(
    body: TodoCardCreate,
    db: AsyncSession = Depends(get_db_session),
) -> TodoCardResponse:
    card = await todo_service.create_card(db, body.title)
    return TodoCardResponse(data=TodoCardOut.model_validate(card))


@router.put("/{card_id}", response_model=TodoCardResponse)
async def rename_card(
    card_id: UUID,
    body: TodoCardUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> TodoCardResponse:
    card = await todo_service.rename_card(db, card_id, body.title)
    return TodoCardResponse(data=TodoCardOut.model_validate(card))


@router.delete("/{card_id}", response_model=SuccessResponse)
async def delete_card(
    card_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse:
    await todo_service.delete_card(db, card_id)
    return SuccessResponse(message="Todo card deleted")


# ── Sub-todos ─────────────────────────────────────────────────────────────

@router.post("/{card_id}/subtodos", status_code=201, response_model=TodoCardResponse)
async def add_sub_todo(
    card_id: UUID,
    body: SubTodoCreate,
    db: AsyncSession = Depends(get_db_session),
) -> TodoCardResponse:
    card = await todo_service.add_sub_todo(db, card_id, body.text)
    return TodoCardResponse(data=TodoCardOut.model_validate(card))


@router.put("/{card_id}/subtodos/{sub_id}", response_model=TodoCardResponse)
async def update_sub_todo(
    card_id: UUID,
    sub_id: str,
    body: SubTodoUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> TodoCardResponse:
    card = await todo_service.update_sub_todo(
        db, card_id, sub_id, text=body.text, completed=body.completed
    )
    return TodoCardResponse(data=TodoCardOut.model_validate(card))


@router.delete("/{card_id}/subtodos/{sub_id}", response_model=TodoCardResponse)
async def delete_sub_todo(
    card_id: UUID,
    sub_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> TodoCardResponse:
    card = await todo_service.delete_sub_todo(db, card_id, sub_id)
    return TodoCardResponse(data=TodoCardOut.model_validate(card))
