"""
Pen2PDF Backend: Generation Service
=====================================

What:  The single entry point for every AI call: generate_response().
How:   Resolves the task's candidates from the injected ModelCatalog, filters
       them, then drives resolve_with_fallback() with an attempt function that
       builds the request for the candidate and calls its backend's adapter.
Who:   Route handlers and ChatService.

Order of checks (each may end the call before any network traffic):
    1. Task lookup             unknown task              → ValidationError
    2. File policy             explicit model refuses it → ValidationError
                               no candidate accepts it   → ValidationError
    3. Credentials             no configured backend     → ConfigurationError
    4. Fallback loop           terminal failure mapping below

Terminal failure mapping:
    RATE_LIMITED     → RateLimitedError(model)
    EMPTY_RESPONSE   → EmptyResponseError
    AUTHENTICATION   → ConfigurationError
    anything else    → ProviderError
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pen2pdf.config import Settings, settings
from pen2pdf.exceptions import (
    ConfigurationError,
    EmptyResponseError,
    Pen2PDFError,
    ProviderError,
    RateLimitedError,
    ValidationError,
)
from pen2pdf.services.fallback import (
    FailureKind,
    FallbackExhausted,
    classify_exception,
    resolve_with_fallback,
)
from pen2pdf.services.file_policy import is_file_allowed
from pen2pdf.services.llm_base import (
    AdapterResult,
    Attachment,
    ContextNote,
    ConversationTurn,
    ProviderAdapter,
)
from pen2pdf.services.model_catalog import ModelCatalog, ModelDescriptor
from pen2pdf.services.request_builder import build_request

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """What callers keep from a call resolution: the text and who served it."""

    text: str
    model_used: str
    attempted_models: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


class _AttemptAbort(Exception):
    """Carries an application error raised inside an attempt out of the loop."""

    def __init__(self, error: Pen2PDFError):
        self.error = error
        super().__init__(str(error))


def _classify(exc: BaseException) -> FailureKind:
    if isinstance(exc, _AttemptAbort):
        return FailureKind.OTHER
    return classify_exception(exc)


class GenerationService:
    """
    Multi-provider generation with deterministic model fallback.

    Holds no per-call state: each generate_response() call starts a fresh
    resolution, so concurrent requests never share anything but the
    read-only catalog and the stateless adapters.
    """

    def __init__(
        self,
        catalog: ModelCatalog,
        adapters: Mapping[str, ProviderAdapter],
        config: Settings = settings,
    ):
        self.catalog = catalog
        self.adapters = dict(adapters)
        self.config = config

    def _filter_by_file_policy(
        self,
        candidates: List[ModelDescriptor],
        attachments: Sequence[Attachment],
        explicit_model: Optional[str],
    ) -> List[ModelDescriptor]:
        if not attachments:
            return candidates

        def accepts_all(model_id: str) -> bool:
            return all(is_file_allowed(model_id, a.mime_type) for a in attachments)

        if explicit_model and not accepts_all(explicit_model):
            refused = next(a for a in attachments if not is_file_allowed(explicit_model, a.mime_type))
            raise ValidationError(
                message=f"File type {refused.mime_type} is not allowed for model {explicit_model}",
                field="file",
                reason="file_type_not_allowed",
                context={"model": explicit_model, "mime_type": refused.mime_type},
            )

        allowed = [c for c in candidates if accepts_all(c.id)]
        if not allowed:
            mime_types = sorted({a.mime_type for a in attachments})
            raise ValidationError(
                message=f"No available model accepts file type(s): {', '.join(mime_types)}",
                field="file",
                reason="file_type_not_allowed",
                context={"mime_types": mime_types},
            )
        skipped = len(candidates) - len(allowed)
        if skipped:
            logger.info("Skipped %d candidate(s) that cannot take the attachments", skipped)
        return allowed

    def _filter_by_credentials(
        self,
        candidates: List[ModelDescriptor],
    ) -> List[ModelDescriptor]:
        usable = []
        missing = set()
        for candidate in candidates:
            adapter = self.adapters.get(candidate.backend)
            if adapter is None:
                missing.add(f"{candidate.backend} backend")
            elif not adapter.is_configured():
                missing.add(adapter.credential_name)
            else:
                usable.append(candidate)

        if not usable:
            missing_list = sorted(missing)
            raise ConfigurationError(
                message=(
                    "No AI backend is configured for this request. "
                    f"Ask an operator to set: {', '.join(missing_list)}"
                ),
                missing=missing_list,
            )
        if missing:
            logger.warning(
                "Skipped candidates on unconfigured backends (missing %s)",
                ", ".join(sorted(missing)),
            )
        return usable

    def _map_terminal_failure(self, exhausted: FallbackExhausted) -> Pen2PDFError:
        attempted = exhausted.attempted_models
        kind = exhausted.last_kind
        context = {"last_failure": kind.value}

        if kind == FailureKind.RATE_LIMITED:
            return RateLimitedError(
                model=exhausted.last_model or "unknown",
                attempted_models=attempted,
            )
        if kind == FailureKind.EMPTY_RESPONSE:
            return EmptyResponseError(attempted_models=attempted, context=context)
        if kind == FailureKind.AUTHENTICATION:
            return ConfigurationError(
                message=(
                    "The AI provider rejected the configured credentials. "
                    "Ask an operator to check the API key."
                ),
                context={**context, "attempted_models": attempted},
            )
        return ProviderError(attempted_models=attempted, context=context)

    async def generate_response(
        self,
        task: str,
        model_id: Optional[str],
        message: str,
        attachments: Sequence[Attachment] = (),
        context_notes: Sequence[ContextNote] = (),
        history: Sequence[ConversationTurn] = (),
        retry_instruction: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> GenerationResult:
        """
        Runs one call resolution for a task.

        Args:
            task:              Task name ("text-extraction", "notes-generation",
                               "chat", "github-chat")
            model_id:          Explicit model picked by the user, tried first; None
                               uses the task's configured order only
            message:           Current user message
            attachments:       Files sent inline with the user turn
            context_notes:     Notes rendered before the message
            history:           Prior turns; trimmed to the history window
            retry_instruction: Extra instruction appended to the system instruction
            options:           temperature / max_tokens passthrough

        Returns:
            GenerationResult(text, model_used, attempted_models).

        Raises:
            ValidationError, ConfigurationError, RateLimitedError,
            ProviderError, EmptyResponseError
        """
        profile = self.catalog.task(task)
        candidates = self.catalog.candidates_for(task, preferred=model_id)
        if not candidates:
            raise ValidationError(
                message="A model must be selected for this request",
                field="model",
                reason="no_candidates",
            )

        candidates = self._filter_by_file_policy(candidates, attachments, model_id)
        candidates = self._filter_by_credentials(candidates)

        logger.info(
            "Generating for task=%s with %d candidate(s): %s",
            task, len(candidates), ", ".join(c.id for c in candidates),
        )

        async def attempt(candidate: ModelDescriptor) -> AdapterResult:
            try:
                request = build_request(
                    profile,
                    candidate.id,
                    message,
                    attachments=attachments,
                    context_notes=context_notes,
                    history=history,
                    retry_instruction=retry_instruction,
                    options=options,
                    history_window=self.config.history_window,
                )
            except Pen2PDFError as e:
                raise _AttemptAbort(e)
            return await self.adapters[candidate.backend].invoke(candidate.id, request)

        resolution = resolve_with_fallback(candidates, attempt, _classify)
        try:
            if self.config.generation_deadline_seconds:
                success = await asyncio.wait_for(
                    resolution, timeout=self.config.generation_deadline_seconds
                )
            else:
                success = await resolution
        except asyncio.TimeoutError:
            logger.error(
                "Generation for task=%s exceeded the %.0fs deadline",
                task, self.config.generation_deadline_seconds,
            )
            raise ProviderError(
                message="The AI request took too long. Please try again or pick a different model.",
                context={"deadline_seconds": self.config.generation_deadline_seconds},
            )
        except FallbackExhausted as exhausted:
            if isinstance(exhausted.last_error, _AttemptAbort):
                raise exhausted.last_error.error
            error = self._map_terminal_failure(exhausted)
            logger.error(
                "All candidates failed for task=%s (attempted=%s, last=%s): %s",
                task, exhausted.attempted_models, exhausted.last_kind.value,
                exhausted.last_error,
            )
            raise error from exhausted.last_error

        result: AdapterResult = success.value
        return GenerationResult(
            text=result.text,
            model_used=success.model_used,
            attempted_models=success.attempted_models,
            metadata=result.metadata,
        )
