"""
Pen2PDF Backend: Whiteboard Service
=====================================

Single-document store for the whiteboard canvas. GET creates an empty board
on first use; PUT replaces the elements wholesale; DELETE clears them.
"""

import logging
from datetime import datetime, timezone
from typing import Any, List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pen2pdf.exceptions import DatabaseError
from pen2pdf.models.whiteboard import WhiteboardState

logger = logging.getLogger(__name__)


class WhiteboardService:
    async def get_or_create(self, db: AsyncSession) -> WhiteboardState:
        try:
            result = await db.execute(
                select(WhiteboardState).order_by(WhiteboardState.created_at).limit(1)
            )
            board = result.scalar_one_or_none()
            if board is None:
                board = WhiteboardState(elements=[])
                db.add(board)
                await db.flush()
                logger.info("Whiteboard created: %s", board.id)
            return board
        except SQLAlchemyError as e:
            logger.error("Database error loading whiteboard: %s", str(e))
            raise DatabaseError(
                message="Could not load the whiteboard. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def save(self, db: AsyncSession, elements: List[Any]) -> WhiteboardState:
        board = await self.get_or_create(db)
        board.elements = list(elements)
        board.updated_at = datetime.now(timezone.utc)
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error saving whiteboard: %s", str(e))
            raise DatabaseError(
                message="Could not save the whiteboard. Please try again.",
                context={"error_type": type(e).__name__},
            )
        logger.debug("Whiteboard saved with %d elements", len(board.elements))
        return board

    async def clear(self, db: AsyncSession) -> WhiteboardState:
        return await self.save(db, [])


whiteboard_service = WhiteboardService()
