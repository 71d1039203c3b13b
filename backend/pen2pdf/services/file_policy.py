"""
Pen2PDF Backend: File Policy Evaluator
========================================

What:  Decides whether a model may receive an attachment of a given MIME type.
How:   The policy is derived purely from the model id with name heuristics
       (vision-capable, PDF-capable). Nothing is stored; it is recomputed on
       every call.
Who:   Model catalog (to annotate descriptors), request builder (per
       attachment), generation service (before any credential check).

Decision order in is_file_allowed():
    1. Blocked MIME type (office formats) → deny, for every model
    2. Model accepts no files             → deny
    3. MIME type in the allowed set       → allow, else deny
"""

from typing import FrozenSet

from pydantic import BaseModel

ALLOWED_IMAGE_MIMES: FrozenSet[str] = frozenset({
    "image/png",
    "image/jpeg",
    "image/webp",
    "image/gif",
})

ALLOWED_PDF_MIME = "application/pdf"

# Blocked for all models, even where another rule would allow them
BLOCKED_MIMES: FrozenSet[str] = frozenset({
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",  # .docx
    "application/msword",  # .doc
    "application/vnd.ms-powerpoint",  # .ppt
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",  # .pptx
    "text/rtf",
})

VISION_PATTERNS = (
    "gpt-4o",
    "gpt-4-turbo",
    "llama-3.2",
    "gemini",
    "phi-3.5-moe",
    "phi-4",
)

PDF_PATTERNS = (
    "gemini",
    "gpt-4o",
    "o1-mini",
    "llama-3.2",
    "phi-4",
)


class FilePolicy(BaseModel):
    """Allow/block rule set for one model's attachments."""

    allows_files: bool
    allowed_mime_types: FrozenSet[str]
    blocked_mime_types: FrozenSet[str] = BLOCKED_MIMES

    model_config = {"frozen": True}


def is_vision_capable(model_id: str) -> bool:
    """True when the model id matches a known image-input family."""
    model = model_id.lower()
    return any(pattern in model for pattern in VISION_PATTERNS)


def is_pdf_capable(model_id: str) -> bool:
    """True when the model id matches a known PDF-input family."""
    model = model_id.lower()
    return any(pattern in model for pattern in PDF_PATTERNS)


def get_file_policy(model_id: str) -> FilePolicy:
    """Builds the file policy for a model id."""
    supports_images = is_vision_capable(model_id)
    supports_pdf = is_pdf_capable(model_id)

    allowed = set()
    if supports_images:
        allowed.update(ALLOWED_IMAGE_MIMES)
    if supports_pdf:
        allowed.add(ALLOWED_PDF_MIME)

    return FilePolicy(
        allows_files=supports_images or supports_pdf,
        allowed_mime_types=frozenset(allowed),
    )


def is_file_allowed(model_id: str, mime_type: str) -> bool:
    """
    Validate if a MIME type is allowed for a model.

    Blocked types are refused first, so a blocked type never passes even if
    it also appears in an allowed set.
    """
    policy = get_file_policy(model_id)
    mime = (mime_type or "").lower()

    if mime in policy.blocked_mime_types:
        return False
    if not policy.allows_files:
        return False
    return mime in policy.allowed_mime_types
