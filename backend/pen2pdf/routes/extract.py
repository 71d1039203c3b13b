"""
Pen2PDF Backend: Text Extraction & Notes Generation Routes
============================================================

What:  POST /textExtract and POST /notesGenerate.
How:   Read the multipart upload into memory, turn each file into an
       Attachment, and hand everything to GenerationService with the task
       name. The response names the model that actually answered.
Who:   The upload panel (text extraction) and the notes generator UI.

Request Flow (both routes):
    1. FastAPI parses multipart/form-data
    2. AttachmentService checks count, size and type
    3. GenerationService: file policy → credentials → fallback loop
    4. 200 with {text, modelUsed}

Errors are raised, never formatted here; the handlers in main.py build the
JSON body and status code.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from pen2pdf.dependencies import get_generation_service
from pen2pdf.exceptions import ValidationError
from pen2pdf.schemas.ai import NotesGenerateResponse, TextExtractResponse
from pen2pdf.schemas.common import ErrorResponse
from pen2pdf.services.attachment_service import attachment_service
from pen2pdf.services.generation_service import GenerationService
from pen2pdf.services.llm_base import Attachment

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Extraction"])

DEFAULT_EXTRACTION_PROMPT = "Extract all the text from the attached file."

_AI_ERROR_RESPONSES = {
    400: {"description": "Missing input or file type not allowed", "model": ErrorResponse},
    429: {"description": "Model quota or rate limit reached", "model": ErrorResponse},
    500: {"description": "AI backend not configured", "model": ErrorResponse},
    502: {"description": "Every candidate model failed", "model": ErrorResponse},
}


async def read_attachment(upload: UploadFile) -> Attachment:
    """Reads one upload fully and validates it. Always closes the upload."""
    try:
        content = await upload.read()
        return attachment_service.from_upload(
            filename=upload.filename,
            content=content,
            declared_mime=upload.content_type,
            content_length=upload.size,
        )
    finally:
        await upload.close()


@router.post(
    "/textExtract",
    response_model=TextExtractResponse,
    responses=_AI_ERROR_RESPONSES,
    summary="Extract text from a file or answer a prompt",
    description=(
        "Send an image or PDF (field `file`) and/or a `prompt`. The text-extraction "
        "models are tried in their configured order until one answers."
    ),
)
async def text_extract(
    file: Optional[UploadFile] = File(default=None, description="Image or PDF to transcribe"),
    prompt: Optional[str] = Form(default=None, description="Free-text prompt"),
    model: Optional[str] = Form(default=None, description="Model to try first"),
    generation: GenerationService = Depends(get_generation_service),
) -> TextExtractResponse:
    prompt = (prompt or "").strip()
    if file is None and not prompt:
        raise ValidationError(
            message="A file or a prompt is required.",
            field="prompt",
            reason="missing_input",
        )

    attachments = [await read_attachment(file)] if file is not None else []
    logger.info(
        "Text extraction request: file=%s, prompt_chars=%d",
        attachments[0].filename if attachments else None,
        len(prompt),
    )

    result = await generation.generate_response(
        task="text-extraction",
        model_id=model or None,
        message=prompt or DEFAULT_EXTRACTION_PROMPT,
        attachments=attachments,
    )
    return TextExtractResponse(text=result.text, model_used=result.model_used)


@router.post(
    "/notesGenerate",
    response_model=NotesGenerateResponse,
    responses=_AI_ERROR_RESPONSES,
    summary="Generate study notes from uploaded files",
    description=(
        "Upload one or more files (field `files`). `preferredModel` is tried first; "
        "`retryInstruction` is appended to the instruction when regenerating."
    ),
)
async def notes_generate(
    files: List[UploadFile] = File(..., description="Source files (images or PDFs)"),
    preferred_model: Optional[str] = Form(default=None, alias="preferredModel"),
    retry_instruction: Optional[str] = Form(default=None, alias="retryInstruction"),
    generation: GenerationService = Depends(get_generation_service),
) -> NotesGenerateResponse:
    if not files:
        raise ValidationError(
            message="At least one file is required to generate notes.",
            field="files",
            reason="missing_input",
        )
    attachment_service.validate_count(len(files))

    attachments = [await read_attachment(upload) for upload in files]
    names = ", ".join(a.filename for a in attachments)
    logger.info(
        "Notes generation request: %d file(s), preferred_model=%s, retry=%s",
        len(attachments), preferred_model, bool(retry_instruction),
    )

    result = await generation.generate_response(
        task="notes-generation",
        model_id=preferred_model or None,
        message=f"Generate study notes from the attached files: {names}",
        attachments=attachments,
        retry_instruction=retry_instruction,
    )
    return NotesGenerateResponse(text=result.text, model_used=result.model_used)
