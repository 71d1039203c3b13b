"""
Pen2PDF Backend: Chat Service
===============================

What:  The assistant ("Bella") conversation: history, sending a message,
       clearing history.
How:   Reads and writes through a ChatSessionStore; every model call goes
       through GenerationService with task "chat".

send_message() flow:
    1. Load the session (create one if none exists), set current model
    2. History window = prior turns (the store keeps them all; the request
       builder trims to the last N)
    3. generate_response(task="chat", model_id=<picked model>, ...)
    4. Append the user turn and the assistant turn, attributed to the model
       that actually answered, then save

    A failed generation raises before step 4, so nothing is written and the
    user can resend the message.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pen2pdf.services.generation_service import GenerationService
from pen2pdf.services.llm_base import Attachment, ContextNote, ConversationTurn
from pen2pdf.services.session_store import ChatSessionStore
from pen2pdf.models.chat import ChatSession

logger = logging.getLogger(__name__)

DEFAULT_CHAT_MODEL = "gemini-2.5-flash"


def _turn_id(offset: int = 0) -> str:
    return str(int(time.time() * 1000) + offset)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            pass
    return datetime.now(timezone.utc)


def to_conversation_turns(messages: Sequence[Dict[str, Any]]) -> List[ConversationTurn]:
    """Stored turn dicts → ConversationTurn values, skipping malformed entries."""
    turns = []
    for message in messages or []:
        role = message.get("role")
        content = message.get("content")
        if role not in ("user", "assistant", "system") or not isinstance(content, str):
            continue
        turns.append(ConversationTurn(
            role=role,
            content=content,
            model=message.get("model"),
            timestamp=_parse_timestamp(message.get("timestamp")),
        ))
    return turns


class ChatService:
    """
    Chat operations over one store and one generation service.

    Constructed per request (the store wraps the request's DB session).
    """

    def __init__(self, store: ChatSessionStore, generation: GenerationService):
        self.store = store
        self.generation = generation

    async def get_or_create_session(self, model: Optional[str] = None) -> ChatSession:
        session = await self.store.find_session()
        if session is None:
            logger.info("No chat history found, creating a new session")
            session = await self.store.create_session(current_model=model or DEFAULT_CHAT_MODEL)
        return session

    async def send_message(
        self,
        message: str,
        model: Optional[str],
        attachments: Sequence[Attachment] = (),
        context_notes: Sequence[ContextNote] = (),
    ) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """
        Sends one user message and stores the exchange.

        Returns:
            (user_turn, assistant_turn) as stored.

        Raises:
            Whatever GenerationService raises; the session is left unchanged.
        """
        session = await self.get_or_create_session(model)
        chosen_model = model or session.current_model or DEFAULT_CHAT_MODEL
        session.current_model = chosen_model

        history = to_conversation_turns(session.messages)
        logger.info(
            "Chat message with model=%s, %d prior turns, %d context notes, %d attachments",
            chosen_model, len(history), len(context_notes), len(attachments),
        )

        result = await self.generation.generate_response(
            task="chat",
            model_id=chosen_model,
            message=message,
            attachments=attachments,
            context_notes=context_notes,
            history=history,
        )

        now = datetime.now(timezone.utc).isoformat()
        user_turn = {
            "id": _turn_id(),
            "role": "user",
            "content": message,
            "model": None,
            "timestamp": now,
            "attachments": [
                {"fileName": a.filename, "fileType": a.mime_type} for a in attachments
            ],
            "contextNotes": [{"title": n.title} for n in context_notes],
        }
        assistant_turn = {
            "id": _turn_id(1),
            "role": "assistant",
            "content": result.text,
            "model": result.model_used,
            "timestamp": now,
            "attachments": [],
            "contextNotes": [],
        }

        self.store.append_turn(session, user_turn)
        self.store.append_turn(session, assistant_turn)
        await self.store.save(session)

        if result.model_used != chosen_model:
            logger.info("Chat answered by fallback model %s (asked for %s)", result.model_used, chosen_model)
        return user_turn, assistant_turn

    async def clear_history(self) -> Optional[ChatSession]:
        session = await self.store.find_session()
        if session is None:
            return None
        session.messages = []
        await self.store.save(session)
        logger.info("Chat history cleared")
        return session
