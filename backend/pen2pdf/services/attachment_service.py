"""
Pen2PDF Backend: Attachment Intake Service
============================================

What:  Turns uploaded files (multipart) and inline files (base64 in chat JSON)
       into in-memory Attachment values, with size, count and type checks.
How:   1. Count check (per request)
       2. Size check (Content-Length first when known, then actual bytes)
       3. MIME detection from the file header bytes with python-magic; the
          client's declared type (or the extension) is used when libmagic is
          unavailable or the bytes are not recognized
Who:   Route handlers, before GenerationService. Nothing is written to disk;
       attachments live for one request only.

This service does not decide whether a model may receive a type. That is the
file policy's job, run per model inside GenerationService.
"""

import base64
import binascii
import logging
from pathlib import Path
from typing import Optional

from pen2pdf.config import settings
from pen2pdf.exceptions import ValidationError
from pen2pdf.services.llm_base import Attachment

logger = logging.getLogger(__name__)

# Extension → MIME for when neither libmagic nor the client gives a usable type
EXTENSION_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".rtf": "text/rtf",
}

# Answers from libmagic that say "unknown", not "this is the type"
_UNINFORMATIVE_MIME_TYPES = {"application/octet-stream", "application/zip", "text/plain"}


def _sniff_mime(content: bytes) -> Optional[str]:
    """MIME type from the header bytes, or None when libmagic is not installed."""
    try:
        import magic
    except ImportError:
        logger.warning(
            "python-magic not available, falling back to declared content types. "
            "Install libmagic for header-based type detection."
        )
        return None

    try:
        return magic.from_buffer(content[:4096], mime=True)
    except Exception as e:
        logger.error("MIME type detection failed: %s", str(e))
        raise ValidationError(
            message="Could not verify the file type. Please try again.",
            field="file",
            reason="mime_detection_failed",
            context={"error_type": type(e).__name__},
        )


class AttachmentService:
    """Validates and normalizes attachments. Stateless."""

    def validate_count(self, count: int) -> None:
        if count > settings.max_files_per_request:
            raise ValidationError(
                message=(
                    f"Too many files ({count}). "
                    f"At most {settings.max_files_per_request} files can be sent at once."
                ),
                field="files",
                reason="too_many_files",
                context={"max_files": settings.max_files_per_request, "received": count},
            )

    def validate_size(self, content_length: Optional[int], actual_size: int, filename: str) -> None:
        """
        Rejects oversized files.

        content_length is the client-reported size (may be None or wrong);
        actual_size is the byte count actually received.
        """
        max_mb = settings.max_file_size / (1024 * 1024)

        if content_length and content_length > settings.max_file_size:
            raise ValidationError(
                message=f"File '{filename}' exceeds the maximum of {max_mb:.0f}MB.",
                field="file",
                reason="file_too_large",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )

        if actual_size > settings.max_file_size:
            raise ValidationError(
                message=(
                    f"File '{filename}' ({actual_size / (1024 * 1024):.1f}MB) "
                    f"exceeds the maximum of {max_mb:.0f}MB."
                ),
                field="file",
                reason="file_too_large",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

        if actual_size == 0:
            raise ValidationError(
                message=f"File '{filename}' is empty.",
                field="file",
                reason="empty_file",
            )

    def resolve_mime_type(
        self,
        content: bytes,
        declared: Optional[str],
        filename: str,
    ) -> str:
        """
        Detected type when informative, else the declared type, else the
        extension's type, else application/octet-stream.
        """
        detected = _sniff_mime(content)
        if detected and detected not in _UNINFORMATIVE_MIME_TYPES:
            if declared and declared.lower() != detected:
                logger.info(
                    "Declared type %s for %s differs from detected %s, using detected",
                    declared, filename, detected,
                )
            return detected

        declared = (declared or "").split(";")[0].strip().lower()
        if declared and declared != "application/octet-stream":
            return declared

        return EXTENSION_MIME_TYPES.get(Path(filename).suffix.lower(), "application/octet-stream")

    def from_upload(
        self,
        filename: Optional[str],
        content: bytes,
        declared_mime: Optional[str],
        content_length: Optional[int] = None,
    ) -> Attachment:
        """Builds an Attachment from a multipart upload."""
        name = Path(filename or "upload").name
        self.validate_size(content_length, len(content), name)
        mime_type = self.resolve_mime_type(content, declared_mime, name)
        logger.debug("Accepted upload %s (%s, %d bytes)", name, mime_type, len(content))
        return Attachment(data=content, mime_type=mime_type, filename=name)

    def from_base64(
        self,
        filename: Optional[str],
        declared_mime: Optional[str],
        encoded: str,
    ) -> Attachment:
        """
        Builds an Attachment from base64 text, with or without a
        `data:<mime>;base64,` prefix.
        """
        name = Path(filename or "attachment").name
        payload = encoded or ""
        if payload.startswith("data:") and "," in payload:
            header, payload = payload.split(",", 1)
            if not declared_mime:
                declared_mime = header[5:].split(";")[0]

        try:
            content = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError):
            raise ValidationError(
                message=f"Attachment '{name}' is not valid base64 data.",
                field="attachments",
                reason="invalid_base64",
            )

        return self.from_upload(name, content, declared_mime)


attachment_service = AttachmentService()
