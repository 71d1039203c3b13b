"""
Pen2PDF Backend: GitHub Models Routes
=======================================

What:  GET  /api/github-models/models  the GitHub Models catalog with file policies,
                                       each flagged `available` when the PAT is set
       POST /api/github-models/chat    one chat completion against a chosen model
How:   The conversation lives client-side and is sent on every call as a JSON
       string in the `messages` form field (multipart, so a file can ride
       along). The last user message becomes the current message; everything
       before it is history.

Checks run in this order, each before any network call:
    1. model and messages present, messages is valid JSON
    2. file type allowed for the model         → 400 file_type_not_allowed
    3. GITHUB_MODELS_PAT set                   → 500 configuration_error
"""

import json
import logging
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from pen2pdf.dependencies import get_generation_service, get_model_catalog
from pen2pdf.exceptions import ValidationError
from pen2pdf.routes.extract import read_attachment
from pen2pdf.schemas.ai import (
    ClientMessage,
    GithubChatResponse,
    ModelListResponse,
    ModelOut,
    UsageOut,
)
from pen2pdf.schemas.common import ErrorResponse
from pen2pdf.services.generation_service import GenerationService
from pen2pdf.services.llm_base import ConversationTurn
from pen2pdf.services.model_catalog import ModelCatalog

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/github-models", tags=["GitHub Models"])

_messages_adapter = TypeAdapter(List[ClientMessage])


def parse_messages(raw: str) -> List[ClientMessage]:
    try:
        messages = _messages_adapter.validate_python(json.loads(raw))
    except (json.JSONDecodeError, PydanticValidationError) as e:
        raise ValidationError(
            message="`messages` must be a JSON array of {role, content} objects.",
            field="messages",
            reason="invalid_messages",
            context={"error_type": type(e).__name__},
        )
    if not messages:
        raise ValidationError(
            message="Missing required fields: model and messages",
            field="messages",
            reason="missing_input",
        )
    return messages


def split_conversation(messages: List[ClientMessage]) -> Tuple[str, List[ConversationTurn]]:
    """(current user message, prior turns). The current message is the last user turn."""
    last_user = max(
        (index for index, m in enumerate(messages) if m.role == "user"),
        default=None,
    )
    if last_user is None:
        raise ValidationError(
            message="The conversation must contain at least one user message.",
            field="messages",
            reason="missing_user_message",
        )
    trailing = messages[last_user + 1:]
    if trailing:
        logger.warning(
            "Dropping %d message(s) after the last user message (roles: %s)",
            len(trailing), ", ".join(m.role for m in trailing),
        )
    history = [
        ConversationTurn(role=m.role, content=m.content)
        for m in messages[:last_user]
    ]
    return messages[last_user].content, history


@router.get(
    "/models",
    response_model=ModelListResponse,
    summary="List GitHub Models",
)
async def list_models(
    catalog: ModelCatalog = Depends(get_model_catalog),
    generation: GenerationService = Depends(get_generation_service),
) -> ModelListResponse:
    adapter = generation.adapters.get("github")
    available = adapter is not None and adapter.is_configured()
    models = [
        ModelOut(
            id=d.id,
            display_name=d.display_name,
            provider=d.provider,
            capabilities={"text": d.capabilities.text, "images": d.capabilities.images},
            file_policy={
                "allowsFiles": d.file_policy.allows_files,
                "allowedMimeTypes": sorted(d.file_policy.allowed_mime_types),
                "blockedMimeTypes": sorted(d.file_policy.blocked_mime_types),
            },
            available=available,
        )
        for d in catalog.list_models("github")
    ]
    return ModelListResponse(models=models)


@router.post(
    "/chat",
    response_model=GithubChatResponse,
    responses={
        400: {"description": "Missing fields or file type not allowed", "model": ErrorResponse},
        429: {"description": "Model quota or rate limit reached", "model": ErrorResponse},
        500: {"description": "GITHUB_MODELS_PAT not configured", "model": ErrorResponse},
        502: {"description": "The model call failed", "model": ErrorResponse},
    },
    summary="Chat with a GitHub Model",
)
async def chat(
    model: str = Form(..., min_length=1),
    messages: str = Form(..., description="JSON array of {role, content}"),
    temperature: Optional[float] = Form(default=None, ge=0.0, le=2.0),
    max_tokens: Optional[int] = Form(default=None, ge=1),
    file: Optional[UploadFile] = File(default=None),
    generation: GenerationService = Depends(get_generation_service),
) -> GithubChatResponse:
    message, history = split_conversation(parse_messages(messages))
    attachments = [await read_attachment(file)] if file is not None else []

    logger.info(
        "GitHub Models chat: model=%s, history=%d, file=%s, preview=%r",
        model, len(history), attachments[0].mime_type if attachments else None, message[:100],
    )

    result = await generation.generate_response(
        task="github-chat",
        model_id=model,
        message=message,
        attachments=attachments,
        history=history,
        options={"temperature": temperature, "max_tokens": max_tokens},
    )
    usage = result.metadata.get("usage") or {}
    return GithubChatResponse(
        message=result.text,
        usage=UsageOut(**usage),
        model=result.model_used,
    )
