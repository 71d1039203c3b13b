"""
Pen2PDF Backend: AI Route Schemas
===================================

Request and response models for the routes that call a model:
/textExtract, /notesGenerate, /api/chat, /api/github-models.

Every successful AI response names the model that actually served it
(`modelUsed` / `model`), which may differ from the one requested when the
fallback layer moved on to another candidate.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from pen2pdf.schemas.common import CamelModel


# ══════════════════════════════════════════════════════════════════════════
# Text extraction & notes generation
# ══════════════════════════════════════════════════════════════════════════

class TextExtractResponse(CamelModel):
    text: str
    model_used: str


class NotesGenerateResponse(CamelModel):
    success: bool = True
    text: str
    model_used: str


# ══════════════════════════════════════════════════════════════════════════
# Chat
# ══════════════════════════════════════════════════════════════════════════

class ChatAttachmentIn(CamelModel):
    """An inline file sent with a chat message, base64 encoded."""

    file_name: str = "attachment"
    file_type: str
    file_data: str


class ContextNoteIn(CamelModel):
    title: str
    content: str


class ChatMessageRequest(CamelModel):
    message: str = Field(min_length=1, max_length=50_000)
    model: Optional[str] = Field(default=None, max_length=100)
    attachments: List[ChatAttachmentIn] = Field(default_factory=list)
    context_notes: List[ContextNoteIn] = Field(default_factory=list)

    @field_validator("message")
    @classmethod
    def validate_message(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("message must not be blank")
        return v


class ChatTurnOut(CamelModel):
    id: str
    role: str
    content: str
    model: Optional[str] = None
    timestamp: datetime
    attachments: List[Dict[str, Any]] = Field(default_factory=list)
    context_notes: List[Dict[str, Any]] = Field(default_factory=list)


class ChatSessionOut(CamelModel):
    id: uuid.UUID
    messages: List[ChatTurnOut]
    current_model: Optional[str] = None
    updated_at: datetime


class ChatSessionResponse(CamelModel):
    success: bool = True
    data: ChatSessionOut


class ChatExchange(CamelModel):
    user_message: ChatTurnOut
    assistant_message: ChatTurnOut


class ChatMessageResponse(CamelModel):
    success: bool = True
    data: ChatExchange


# ══════════════════════════════════════════════════════════════════════════
# GitHub Models
# ══════════════════════════════════════════════════════════════════════════

class ModelOut(CamelModel):
    id: str
    display_name: str
    provider: str
    capabilities: Dict[str, Any]
    file_policy: Dict[str, Any]
    # False while GITHUB_MODELS_PAT is unset, so the UI can grey the model out
    available: bool = False


class ModelListResponse(CamelModel):
    success: bool = True
    models: List[ModelOut]


class ClientMessage(CamelModel):
    """One message of the conversation the GitHub Models UI keeps client-side."""

    role: str
    content: str

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str) -> str:
        if v not in {"user", "assistant", "system"}:
            raise ValueError(f"Invalid role '{v}'")
        return v


class UsageOut(CamelModel):
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


class GithubChatResponse(CamelModel):
    success: bool = True
    message: str
    usage: UsageOut = Field(default_factory=UsageOut)
    model: str
