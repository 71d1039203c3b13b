"""
Pen2PDF Backend: Request Builder
==================================

What:  Turns a task, a model and the caller's inputs into one
       provider-agnostic ProviderRequest.
How:   1. System instruction of the task (plus an optional retry instruction)
       2. Context notes rendered as titled blocks, placed before the message
       3. History trimmed to the last `history_window` turns, oldest first
       4. Every attachment checked against the model's file policy;
          a refused attachment is a ValidationError, never sent
Who:   GenerationService, once per candidate model (the file policy differs
       per model, so the request is rebuilt for each candidate).
"""

from typing import Any, Dict, Optional, Sequence

from pen2pdf.config import settings
from pen2pdf.exceptions import ValidationError
from pen2pdf.services.file_policy import is_file_allowed
from pen2pdf.services.llm_base import (
    Attachment,
    ContextNote,
    ConversationTurn,
    ProviderRequest,
)
from pen2pdf.services.model_catalog import TaskProfile


def render_context_notes(notes: Sequence[ContextNote]) -> str:
    """`--- {title} ---\\n{content}` per note, in order, separated by blank lines."""
    return "\n\n".join(f"--- {note.title} ---\n{note.content}" for note in notes)


def compose_system_instruction(base: str, retry_instruction: Optional[str] = None) -> str:
    if retry_instruction and retry_instruction.strip():
        return f"{base}\n\nAdditional instruction: {retry_instruction.strip()}"
    return base


def trim_history(
    history: Sequence[ConversationTurn],
    window: int,
) -> list:
    """
    Last `window` turns, original order.

    System turns count toward the window and are kept; each adapter decides
    how its wire format carries them.
    """
    if window <= 0:
        return []
    return list(history[-window:])


def build_request(
    profile: TaskProfile,
    model_id: str,
    message: str,
    attachments: Sequence[Attachment] = (),
    context_notes: Sequence[ContextNote] = (),
    history: Sequence[ConversationTurn] = (),
    retry_instruction: Optional[str] = None,
    options: Optional[Dict[str, Any]] = None,
    history_window: Optional[int] = None,
) -> ProviderRequest:
    """
    Builds the ProviderRequest for one candidate model.

    Raises:
        ValidationError: an attachment's MIME type is refused for this model.
    """
    for attachment in attachments:
        if not is_file_allowed(model_id, attachment.mime_type):
            raise ValidationError(
                message=(
                    f"File type {attachment.mime_type} is not allowed for model {model_id}"
                ),
                field="file",
                reason="file_type_not_allowed",
                context={
                    "model": model_id,
                    "mime_type": attachment.mime_type,
                    "filename": attachment.filename,
                },
            )

    user_text = message or ""
    if context_notes:
        block = render_context_notes(context_notes)
        user_text = f"{block}\n\n{user_text}" if user_text else block

    window = settings.history_window if history_window is None else history_window

    return ProviderRequest(
        task=profile.name,
        model_id=model_id,
        system_instruction=compose_system_instruction(
            profile.system_instruction, retry_instruction
        ),
        user_text=user_text,
        history=trim_history(history, window),
        attachments=list(attachments),
        options=dict(options or {}),
    )
