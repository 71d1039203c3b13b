"""
Pen2PDF Backend: Chat Routes
==============================

What:  The assistant conversation.
           GET    /api/chat          history (an empty session is created on first use)
           POST   /api/chat/message  send a message, get both stored turns back
           DELETE /api/chat          clear the history
How:   Thin handlers over ChatService; inline attachments arrive base64 encoded
       in the JSON body and go through AttachmentService first.
"""

import logging

from fastapi import APIRouter, Depends

from pen2pdf.dependencies import get_chat_service
from pen2pdf.schemas.ai import (
    ChatExchange,
    ChatMessageRequest,
    ChatMessageResponse,
    ChatSessionOut,
    ChatSessionResponse,
)
from pen2pdf.schemas.common import ErrorResponse, SuccessResponse
from pen2pdf.services.attachment_service import attachment_service
from pen2pdf.services.chat_service import ChatService
from pen2pdf.services.llm_base import ContextNote

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["Chat"])


@router.get(
    "",
    response_model=ChatSessionResponse,
    summary="Get the chat history",
)
async def get_history(
    chat: ChatService = Depends(get_chat_service),
) -> ChatSessionResponse:
    session = await chat.get_or_create_session()
    return ChatSessionResponse(data=ChatSessionOut.model_validate(session))


@router.post(
    "/message",
    response_model=ChatMessageResponse,
    responses={
        400: {"description": "Invalid message or attachment", "model": ErrorResponse},
        429: {"description": "Model quota or rate limit reached", "model": ErrorResponse},
        502: {"description": "Every candidate model failed", "model": ErrorResponse},
    },
    summary="Send a chat message",
)
async def send_message(
    body: ChatMessageRequest,
    chat: ChatService = Depends(get_chat_service),
) -> ChatMessageResponse:
    attachment_service.validate_count(len(body.attachments))
    attachments = [
        attachment_service.from_base64(a.file_name, a.file_type, a.file_data)
        for a in body.attachments
    ]
    context_notes = [ContextNote(title=n.title, content=n.content) for n in body.context_notes]

    user_turn, assistant_turn = await chat.send_message(
        message=body.message,
        model=body.model,
        attachments=attachments,
        context_notes=context_notes,
    )
    return ChatMessageResponse(
        data=ChatExchange(user_message=user_turn, assistant_message=assistant_turn)
    )


@router.delete(
    "",
    response_model=SuccessResponse,
    summary="Clear the chat history",
)
async def clear_history(
    chat: ChatService = Depends(get_chat_service),
) -> SuccessResponse:
    await chat.clear_history()
    return SuccessResponse(message="Chat history cleared")
