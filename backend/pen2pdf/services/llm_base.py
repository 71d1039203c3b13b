"""
Pen2PDF Backend: Provider Adapter Interface
=============================================

What:  Abstract base class for one wire protocol (not one model), plus the
       provider-agnostic request/response types shared by every adapter.
How:   Concrete adapters inherit from ProviderAdapter and implement
       serialize() and invoke().
Who:   GenerationService picks an adapter per candidate model by backend name.

Adapters:
    - GeminiAdapter (gemini_service.py): structured-turn "contents" requests
      through the google-generativeai SDK
    - ChatCompletionsAdapter (chat_completions_service.py): OpenAI-style
      "messages" requests over httpx (GitHub Models, LongCat)

Contract for invoke():
    - Exactly one network call, no internal retry
    - Returns AdapterResult with non-empty text on success
    - Raises ProviderCallError on any failure (HTTP status kept when known);
      an empty response is a ProviderCallError with kind EMPTY_RESPONSE
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Attachment:
    """Raw bytes of one uploaded file, alive for a single request."""

    data: bytes
    mime_type: str
    filename: str = "upload"


@dataclass(frozen=True)
class ContextNote:
    """A saved note the user pinned to a chat message as extra context."""

    title: str
    content: str


@dataclass(frozen=True)
class ConversationTurn:
    """One message of a conversation. Order in the containing list is meaningful."""

    role: str  # user | assistant | system
    content: str
    model: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class ProviderRequest:
    """
    Provider-agnostic request produced by the request builder.

    `user_text` already contains the rendered context notes; `history` is
    already trimmed to the context window.
    """

    task: str
    model_id: str
    system_instruction: str
    user_text: str
    history: List[ConversationTurn] = field(default_factory=list)
    attachments: List[Attachment] = field(default_factory=list)
    options: Dict[str, Any] = field(default_factory=dict)

    def render_history_block(self) -> str:
        """
        Flattens the history into one text block for providers that only
        accept a single text blob per turn.
        """
        if not self.history:
            return ""
        labels = {"user": "User", "assistant": "Assistant", "system": "System"}
        lines = [
            f"{labels.get(turn.role, 'Assistant')}: {turn.content}"
            for turn in self.history
        ]
        return (
            "Here is your previous conversation with the user:\n\n"
            + "\n".join(lines)
            + "\n\nNow respond to their current message below."
        )


@dataclass
class AdapterResult:
    """Normalized outcome of a successful provider call."""

    text: str
    model_id: str
    source: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class ProviderAdapter(ABC):
    """
    Abstract interface for one provider wire protocol.

    Subclasses set `backend` (catalog routing key) and `credential_name`
    (env var reported in ConfigurationError).
    """

    backend: str = ""
    credential_name: str = ""

    @abstractmethod
    def is_configured(self) -> bool:
        """True when the credential for this backend is present."""
        ...

    @abstractmethod
    def serialize(self, request: ProviderRequest) -> Dict[str, Any]:
        """Builds the exact request body this provider expects."""
        ...

    @abstractmethod
    async def invoke(self, model_id: str, request: ProviderRequest) -> AdapterResult:
        """
        Issues one call for one candidate model.

        Raises:
            ProviderCallError: on HTTP errors, transport errors, or when no
                text could be extracted from the response.
        """
        ...

    async def health_check(self) -> bool:
        """Lightweight reachability check. Defaults to the credential check."""
        return self.is_configured()
