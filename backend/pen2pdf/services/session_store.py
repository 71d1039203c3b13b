"""
Pen2PDF Backend: Chat Session Store
=====================================

What:  The narrow persistence interface ChatService works through, and its
       SQLAlchemy implementation.
How:   ChatSessionStore is a typing.Protocol, so tests can pass an in-memory
       fake. SqlChatSessionStore works on the request's AsyncSession; the
       get_db_session dependency commits.

Single-document convention: there is one conversation. find_session()
returns the oldest row or None. No optimistic locking: concurrent writers
race and the last write wins.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pen2pdf.exceptions import DatabaseError
from pen2pdf.models.chat import ChatSession

logger = logging.getLogger(__name__)


class ChatSessionStore(Protocol):
    async def find_session(self) -> Optional[ChatSession]:
        ...

    async def create_session(self, current_model: Optional[str] = None) -> ChatSession:
        ...

    def append_turn(self, session: ChatSession, turn: Dict[str, Any]) -> None:
        ...

    async def save(self, session: ChatSession) -> ChatSession:
        ...


class SqlChatSessionStore:
    """ChatSessionStore backed by the chat_sessions table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_session(self) -> Optional[ChatSession]:
        try:
            result = await self.db.execute(
                select(ChatSession).order_by(ChatSession.created_at).limit(1)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error loading chat session: %s", str(e))
            raise DatabaseError(
                message="Could not load the chat history. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def create_session(self, current_model: Optional[str] = None) -> ChatSession:
        session = ChatSession(messages=[], current_model=current_model)
        self.db.add(session)
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error creating chat session: %s", str(e))
            raise DatabaseError(
                message="Could not start a chat session. Please try again.",
                context={"error_type": type(e).__name__},
            )
        logger.info("Chat session created: %s", session.id)
        return session

    def append_turn(self, session: ChatSession, turn: Dict[str, Any]) -> None:
        # New list so the JSONB column is flagged dirty
        session.messages = [*(session.messages or []), turn]

    async def save(self, session: ChatSession) -> ChatSession:
        session.updated_at = datetime.now(timezone.utc)
        self.db.add(session)
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error saving chat session %s: %s", session.id, str(e))
            raise DatabaseError(
                message="Could not save the chat history. Please try again.",
                context={"session_id": str(session.id)},
            )
        return session
