"""
Pen2PDF Backend: Todo Service
===============================

What:  Todo cards and their inline sub-todos (/api/todos).
How:   Sub-todos are dicts inside TodoCard.sub_todos. Every mutation builds a
       new list and assigns it, so SQLAlchemy sees the JSONB change.
Who:   routes/todos.py.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pen2pdf.exceptions import DatabaseError, NotFoundError
from pen2pdf.models.todo import TodoCard

logger = logging.getLogger(__name__)


class TodoService:
    """Stateless; one AsyncSession per call."""

    async def _flush(self, db: AsyncSession, action: str, card_id: Optional[UUID] = None) -> None:
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error (%s) on todo card %s: %s", action, card_id, str(e))
            raise DatabaseError(
                message=f"Could not {action} the todo. Please try again.",
                context={"card_id": str(card_id) if card_id else None},
            )

    async def list_cards(self, db: AsyncSession) -> List[TodoCard]:
        try:
            result = await db.execute(select(TodoCard).order_by(desc(TodoCard.created_at)))
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing todo cards: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve todos. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def get_card(self, db: AsyncSession, card_id: UUID) -> TodoCard:
        try:
            result = await db.execute(select(TodoCard).where(TodoCard.id == card_id))
            card = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching todo card %s: %s", card_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the todo. Please try again.",
                context={"card_id": str(card_id)},
            )
        if card is None:
            raise NotFoundError(resource="todo", resource_id=str(card_id))
        return card

    async def create_card(self, db: AsyncSession, title: str) -> TodoCard:
        card = TodoCard(title=title.strip(), sub_todos=[])
        db.add(card)
        await self._flush(db, "create")
        logger.info("Todo card created: %s", card.id)
        return card

    async def rename_card(self, db: AsyncSession, card_id: UUID, title: str) -> TodoCard:
        card = await self.get_card(db, card_id)
        card.title = title.strip()
        card.updated_at = datetime.now(timezone.utc)
        await self._flush(db, "update", card_id)
        return card

    async def delete_card(self, db: AsyncSession, card_id: UUID) -> None:
        card = await self.get_card(db, card_id)
        await db.delete(card)
        await self._flush(db, "delete", card_id)
        logger.info("Todo card deleted: %s", card_id)

    # ── Sub-todos ─────────────────────────────────────────────────────────

    async def add_sub_todo(self, db: AsyncSession, card_id: UUID, text: str) -> TodoCard:
        card = await self.get_card(db, card_id)
        sub_todo: Dict[str, Any] = {
            "id": uuid.uuid4().hex,
            "text": text.strip(),
            "completed": False,
            "createdAt": datetime.now(timezone.utc).isoformat(),
        }
        card.sub_todos = [*(card.sub_todos or []), sub_todo]
        card.updated_at = datetime.now(timezone.utc)
        await self._flush(db, "update", card_id)
        return card

    async def update_sub_todo(
        self,
        db: AsyncSession,
        card_id: UUID,
        sub_id: str,
        text: Optional[str] = None,
        completed: Optional[bool] = None,
    ) -> TodoCard:
        card = await self.get_card(db, card_id)

        updated = []
        found = False
        for item in card.sub_todos or []:
            if item.get("id") == sub_id:
                found = True
                item = dict(item)
                if text is not None:
                    item["text"] = text.strip()
                if completed is not None:
                    item["completed"] = completed
            updated.append(item)

        if not found:
            raise NotFoundError(resource="sub-todo", resource_id=sub_id)

        card.sub_todos = updated
        card.updated_at = datetime.now(timezone.utc)
        await self._flush(db, "update", card_id)
        return card

    async def delete_sub_todo(self, db: AsyncSession, card_id: UUID, sub_id: str) -> TodoCard:
        card = await self.get_card(db, card_id)
        remaining = [item for item in card.sub_todos or [] if item.get("id") != sub_id]
        if len(remaining) == len(card.sub_todos or []):
            raise NotFoundError(resource="sub-todo", resource_id=sub_id)

        card.sub_todos = remaining
        card.updated_at = datetime.now(timezone.utc)
        await self._flush(db, "update", card_id)
        return card


todo_service = TodoService()
