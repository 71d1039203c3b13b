"""
Pen2PDF Backend: Custom Exception Hierarchy
=============================================

What:  Application-specific exceptions for every error a caller can observe.
How:   Each exception carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by services; caught by global handlers.

Exception Hierarchy:
    Pen2PDFError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── NotFoundError            → 404 Not Found
    ├── ConfigurationError       → 500 (operator must set a credential)
    ├── RateLimitedError         → 429 (a model hit its quota; switch model)
    ├── ProviderError            → 502 (every candidate model failed)
    ├── EmptyResponseError       → 502 (models answered with no usable text)
    └── DatabaseError            → 500 Internal Server Error

    ProviderCallError is NOT part of the public hierarchy. Adapters raise it
    for a single failed candidate call and the fallback layer absorbs it.
"""

from typing import Any, Dict, List, Optional


class Pen2PDFError(Exception):
    """
    Base exception for all Pen2PDF application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, only whitelisted keys returned)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(Pen2PDFError):
    """
    Raised when client input fails validation.

    When:    Missing field, attachment type refused by the model's file policy,
             oversized upload, malformed JSON in a form field.
    HTTP:    400 Bad Request

    Example response:
        {
            "error": "validation_error",
            "message": "File type application/msword is not allowed for model gpt-4o",
            "details": {"field": "file", "reason": "file_type_not_allowed"}
        }
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        reason: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        if reason:
            ctx["reason"] = reason
        super().__init__(message=message, context=ctx)
        self.field = field
        self.reason = reason


class NotFoundError(Pen2PDFError):
    """
    Raised when a requested resource does not exist.

    When:    GET /api/notes/{id} or /api/todos/{id} with an unknown UUID.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConfigurationError(Pen2PDFError):
    """
    Raised when the server is missing a credential or has no usable models.

    HTTP:    500, but with error kind "configuration_error" so the UI can say
             "ask an operator to configure X" instead of "try again".
    """

    def __init__(
        self,
        message: str = "The AI backend is not configured",
        missing: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if missing:
            ctx["missing"] = missing
        super().__init__(message=message, context=ctx)
        self.missing = missing or []


class RateLimitedError(Pen2PDFError):
    """
    Raised when the model(s) tried for a request hit their quota or rate limit.

    HTTP:    429 Too Many Requests
    Carries: `model`, the last rate-limited model, so the UI can suggest
             switching to a different one.
    """

    def __init__(
        self,
        model: str,
        attempted_models: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f'Model "{model}" has reached its quota or rate limit. '
            f"Please switch to a different model."
        )
        ctx = context or {}
        ctx["model"] = model
        ctx["attempted_models"] = attempted_models or [model]
        super().__init__(message=message, context=ctx)
        self.model = model
        self.attempted_models = ctx["attempted_models"]


class ProviderError(Pen2PDFError):
    """
    Raised when every candidate model failed, or one failed in a way that
    would repeat against all the others (bad request, network error).

    HTTP:    502 Bad Gateway
    """

    def __init__(
        self,
        message: str = "The AI provider could not complete the request. Please try a different model.",
        attempted_models: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["attempted_models"] = attempted_models or []
        super().__init__(message=message, context=ctx)
        self.attempted_models = ctx["attempted_models"]


class EmptyResponseError(Pen2PDFError):
    """
    Raised when every candidate answered but none returned extractable text.

    HTTP:    502 Bad Gateway
    """

    def __init__(
        self,
        attempted_models: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["attempted_models"] = attempted_models or []
        super().__init__(
            message="No valid text response was received from the AI models.",
            context=ctx,
        )
        self.attempted_models = ctx["attempted_models"]


class DatabaseError(Pen2PDFError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error
    The client message is always generic; details are logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ProviderCallError(Exception):
    """
    One failed call to one candidate model.

    Raised by provider adapters, absorbed by the fallback orchestrator.

    Attributes:
        status:    HTTP status reported by the provider (None for transport errors)
        message:   Raw provider message (logged, never returned to clients)
        model_id:  The candidate that failed
        kind:      Pre-classified FailureKind, set only when the adapter
                   already knows it (empty response); otherwise None
        metadata:  Provider headers captured for logging
    """

    def __init__(
        self,
        status: Optional[int],
        message: str,
        model_id: Optional[str] = None,
        kind: Optional[Any] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.status = status
        self.message = message
        self.model_id = model_id
        self.kind = kind
        self.metadata = metadata or {}
        super().__init__(f"[{status}] {message}" if status else message)
