"""
Pen2PDF Backend: Model Catalog
================================

What:  The candidate models every AI task may use, with capability flags and
       file policies, plus one TaskProfile per task.
How:   Built once at startup by build_default_catalog(settings) and injected
       into GenerationService. Task candidate lists come from Settings, so the
       priority order is configured per deployment, not per call site.
Who:   GenerationService (candidates_for), the GitHub Models route (list_models).

Backends:
    gemini   served by GeminiAdapter (google-generativeai SDK)
    github   served by ChatCompletionsAdapter against GitHub Models
    longcat  served by ChatCompletionsAdapter against LongCat;
             any id starting with "longcat" is routed here regardless of task

Discovery:
    refresh() swaps one backend's id list for a freshly discovered one.
    A failing or empty discovery leaves the current list untouched.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

import google.generativeai as genai
from pydantic import BaseModel, Field
from tenacity import (
    before_sleep_log,
    retry,
    stop_after_attempt,
    wait_exponential_jitter,
)

from pen2pdf.config import Settings, settings
from pen2pdf.exceptions import ValidationError
from pen2pdf.services.file_policy import FilePolicy, get_file_policy, is_vision_capable
from pen2pdf.services.prompts import (
    ASSISTANT_INSTRUCTION,
    NOTES_GENERATION_INSTRUCTION,
    TEXT_EXTRACTION_INSTRUCTION,
)

logger = logging.getLogger(__name__)


# ── Static catalogs ───────────────────────────────────────────────────────

GEMINI_MODELS: Tuple[str, ...] = (
    "gemini-2.5-pro",
    "gemini-2.5-flash",
    "gemini-2.5-pro-latest",
    "gemini-2.5-flash-latest",
    "gemini-2.5-pro-002",
    "gemini-2.5-flash-002",
    "gemini-2.0-flash",
    "gemini-2.0-flash-exp",
    "gemini-2.0-flash-lite",
)

# GitHub Models has no public discovery endpoint; this list is the catalog.
GITHUB_MODELS: Tuple[str, ...] = (
    # OpenAI
    "gpt-5",
    "gpt-4o",
    "gpt-4o-mini",
    "gpt-4-turbo",
    "gpt-4",
    "gpt-3.5-turbo",
    # Anthropic
    "claude-3-5-sonnet-4.5",
    "claude-3-5-sonnet-20241022",
    "claude-3-5-sonnet",
    "claude-3-opus-20240229",
    "claude-3-opus",
    "claude-3-sonnet-20240229",
    "claude-3-sonnet",
    "claude-3-haiku-20240307",
    "claude-3-haiku",
    # Meta
    "llama-3.3-70b-instruct",
    "llama-3.2-90b-vision-instruct",
    "llama-3.2-11b-vision-instruct",
    "llama-3.1-405b-instruct",
    "llama-3.1-70b-instruct",
    "llama-3.1-8b-instruct",
    # Google
    "gemini-1.5-pro",
    "gemini-1.5-flash",
    "gemini-1.5-flash-8b",
    # Mistral
    "mistral-large-2411",
    "mistral-large",
    "mistral-small",
    "mistral-nemo",
    # Cohere
    "cohere-command-r-plus",
    "cohere-command-r",
    # AI21
    "ai21-jamba-1.5-large",
    "ai21-jamba-1.5-mini",
    # Microsoft
    "phi-4",
    "phi-3.5-moe-instruct",
    "phi-3.5-mini-instruct",
    "phi-3-medium-instruct",
    "phi-3-small-instruct",
    "phi-3-mini-instruct",
)

LONGCAT_MODELS: Tuple[str, ...] = (
    "longcat-flash-chat",
    "longcat-flash-thinking",
)

# Substring → provider, checked in order; vendor-prefixed ids still match
_PROVIDER_MARKERS: Tuple[Tuple[str, str], ...] = (
    ("gpt", "openai"),
    ("claude", "anthropic"),
    ("gemini", "google"),
    ("llama", "meta"),
    ("mistral", "mistral"),
    ("cohere", "cohere"),
    ("ai21", "ai21"),
    ("jamba", "ai21"),
    ("phi", "microsoft"),
    ("longcat", "longcat"),
)


def infer_provider(model_id: str) -> str:
    """Guesses the model vendor from its id; "unknown" when nothing matches."""
    name = model_id.lower()
    for marker, provider in _PROVIDER_MARKERS:
        if marker in name:
            return provider
    return "unknown"


def prettify_model_name(model_id: str) -> str:
    """"openai/gpt-4o-mini" → "Gpt 4o Mini"."""
    name = model_id.split("/")[-1]
    return " ".join(word[:1].upper() + word[1:] for word in name.split("-") if word)


# ── Types ─────────────────────────────────────────────────────────────────

class ModelCapabilities(BaseModel):
    text: bool = True
    images: bool = False
    max_context: Optional[int] = None

    model_config = {"frozen": True}


class ModelDescriptor(BaseModel):
    """
    One candidate model. Immutable once built.

    `priority` is the position in the list it was taken from (0 = tried first).
    """

    id: str
    display_name: str
    provider: str
    backend: str
    capabilities: ModelCapabilities
    file_policy: FilePolicy
    priority: int = 0

    model_config = {"frozen": True}

    @classmethod
    def from_id(cls, model_id: str, backend: str, priority: int = 0) -> "ModelDescriptor":
        return cls(
            id=model_id,
            display_name=prettify_model_name(model_id),
            provider=infer_provider(model_id),
            backend=backend,
            capabilities=ModelCapabilities(images=is_vision_capable(model_id)),
            file_policy=get_file_policy(model_id),
            priority=priority,
        )


class TaskProfile(BaseModel):
    """A logical AI task: its system instruction, default backend and candidates."""

    name: str
    system_instruction: str
    backend: str
    candidates: Tuple[str, ...] = Field(default_factory=tuple)

    model_config = {"frozen": True}


# ── Catalog ───────────────────────────────────────────────────────────────

class ModelCatalog:
    """
    Per-backend model lists and per-task candidate priority lists.

    Constructed explicitly and passed around; tests build one with tiny
    deterministic lists.
    """

    def __init__(
        self,
        models: Dict[str, Iterable[str]],
        tasks: Iterable[TaskProfile],
    ):
        self._models: Dict[str, List[str]] = {b: list(ids) for b, ids in models.items()}
        self._tasks: Dict[str, TaskProfile] = {t.name: t for t in tasks}

    @property
    def backends(self) -> List[str]:
        return list(self._models)

    @property
    def task_names(self) -> List[str]:
        return list(self._tasks)

    def task(self, name: str) -> TaskProfile:
        try:
            return self._tasks[name]
        except KeyError:
            raise ValidationError(
                message=f"Unknown task '{name}'",
                field="task",
                reason="unknown_task",
                context={"known_tasks": self.task_names},
            )

    @staticmethod
    def backend_for(model_id: str, default_backend: str) -> str:
        if model_id.lower().startswith("longcat"):
            return "longcat"
        return default_backend

    def list_models(self, backend: Optional[str] = None) -> List[ModelDescriptor]:
        """Ordered descriptors for one backend, or for all backends in order."""
        backends = [backend] if backend else self.backends
        descriptors = []
        for name in backends:
            for position, model_id in enumerate(self._models.get(name, [])):
                descriptors.append(ModelDescriptor.from_id(model_id, name, position))
        return descriptors

    def candidates_for(
        self,
        task: str,
        preferred: Optional[str] = None,
    ) -> List[ModelDescriptor]:
        """
        Ordered candidates for a task.

        A preferred (user-chosen) model goes first, then the task's list
        without repeats. Priority is the resulting position.
        """
        profile = self.task(task)
        ordered: List[str] = []
        for model_id in ([preferred] if preferred else []) + list(profile.candidates):
            if model_id and model_id not in ordered:
                ordered.append(model_id)

        return [
            ModelDescriptor.from_id(
                model_id,
                self.backend_for(model_id, profile.backend),
                position,
            )
            for position, model_id in enumerate(ordered)
        ]

    async def refresh(
        self,
        backend: str,
        discover: Callable[[], Awaitable[List[str]]],
    ) -> bool:
        """
        Replaces a backend's list with discovered ids.

        Returns True when the list was replaced. On an exception or an empty
        result the current list is kept and False is returned.
        """
        try:
            discovered = await discover()
        except Exception as e:
            logger.warning(
                "Model discovery for %s failed, keeping %d cataloged models: %s",
                backend, len(self._models.get(backend, [])), str(e),
            )
            return False

        ids = [model_id for model_id in (discovered or []) if model_id]
        if not ids:
            logger.warning(
                "Model discovery for %s returned no models, keeping the current list",
                backend,
            )
            return False

        self._models[backend] = ids
        logger.info("Model discovery for %s loaded %d models", backend, len(ids))
        return True


# ── Discovery ─────────────────────────────────────────────────────────────

@retry(
    stop=stop_after_attempt(settings.retry_max_attempts),
    wait=wait_exponential_jitter(
        initial=settings.retry_min_wait,
        max=settings.retry_max_wait,
        jitter=1,
    ),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def discover_gemini_models() -> List[str]:
    """
    Lists Gemini models that support generateContent.

    genai.list_models() is a blocking paginated call, so it runs in a thread.
    Assumes genai.configure() was already called by GeminiAdapter.
    """
    models = await asyncio.to_thread(lambda: list(genai.list_models()))
    return [
        model.name.split("/")[-1]
        for model in models
        if "generateContent" in (getattr(model, "supported_generation_methods", None) or [])
    ]


def build_default_catalog(config: Settings = settings) -> ModelCatalog:
    """Static catalog plus task profiles from the configured candidate lists."""
    candidates = config.task_candidates
    tasks = [
        TaskProfile(
            name="text-extraction",
            system_instruction=TEXT_EXTRACTION_INSTRUCTION,
            backend="gemini",
            candidates=tuple(candidates["text-extraction"]),
        ),
        TaskProfile(
            name="notes-generation",
            system_instruction=NOTES_GENERATION_INSTRUCTION,
            backend="gemini",
            candidates=tuple(candidates["notes-generation"]),
        ),
        TaskProfile(
            name="chat",
            system_instruction=ASSISTANT_INSTRUCTION,
            backend="gemini",
            candidates=tuple(candidates["chat"]),
        ),
        TaskProfile(
            name="github-chat",
            system_instruction=ASSISTANT_INSTRUCTION,
            backend="github",
            candidates=tuple(candidates["github-chat"]),
        ),
    ]
    return ModelCatalog(
        models={
            "gemini": GEMINI_MODELS,
            "github": GITHUB_MODELS,
            "longcat": LONGCAT_MODELS,
        },
        tasks=tasks,
    )
