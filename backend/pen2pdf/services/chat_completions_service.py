"""
Pen2PDF Backend: Chat Completions Adapter
===========================================

What:  ProviderAdapter for the OpenAI-style "messages" wire protocol.
How:   One httpx POST to {base_url}/chat/completions with bearer auth.
       Two deployments share this class:
           - GitHub Models: history sent as structured messages
           - LongCat:       history flattened into one system message
Who:   Instantiated once per backend at app startup.

Wire shape produced by serialize():
    {
        "model": "gpt-4o",
        "messages": [
            {"role": "system", "content": "..."},
            {"role": "user", "content": "..."},
            {"role": "assistant", "content": "..."},
            {"role": "user", "content": [
                {"type": "text", "text": "..."},
                {"type": "image_url", "image_url": {"url": "data:image/png;base64,..."}}
            ]}
        ],
        "temperature": 0.7,     # only when given
        "max_tokens": 1024      # only when given
    }

Captured for logging (never for control flow):
    x-ratelimit-remaining, x-ratelimit-reset, x-request-id, x-ms-request-id,
    and the normalized token usage.
"""

import base64
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from pen2pdf.config import settings
from pen2pdf.exceptions import ProviderCallError
from pen2pdf.services.extraction import extract_text
from pen2pdf.services.llm_base import AdapterResult, ProviderAdapter, ProviderRequest

logger = logging.getLogger(__name__)

CAPTURED_HEADERS = (
    "x-ratelimit-remaining",
    "x-ratelimit-reset",
    "x-request-id",
    "x-ms-request-id",
)


def normalize_usage(usage: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """OpenAI (prompt/completion) and Anthropic (input/output) token counts."""
    usage = usage or {}
    return {
        "prompt_tokens": usage.get("prompt_tokens", usage.get("input_tokens")),
        "completion_tokens": usage.get("completion_tokens", usage.get("output_tokens")),
        "total_tokens": usage.get("total_tokens"),
    }


class ChatCompletionsAdapter(ProviderAdapter):
    """
    OpenAI-compatible chat completions over httpx.

    Args:
        backend:          Catalog routing key ("github", "longcat")
        base_url:         API root; "/chat/completions" is appended
        api_key:          Bearer token
        credential_name:  Env var named in ConfigurationError
        flatten_history:  Send history as one system message instead of turns
        timeout:          Transport timeout in seconds
        transport:        Optional httpx transport (tests use MockTransport)
    """

    def __init__(
        self,
        backend: str,
        base_url: str,
        api_key: str,
        credential_name: str,
        flatten_history: bool = False,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.backend = backend
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.credential_name = credential_name
        self.flatten_history = flatten_history
        self.timeout = timeout or settings.provider_timeout_seconds
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def serialize(self, request: ProviderRequest) -> Dict[str, Any]:
        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": request.system_instruction},
        ]

        if request.history:
            if self.flatten_history:
                messages.append({"role": "system", "content": request.render_history_block()})
            else:
                messages.extend(
                    {"role": turn.role, "content": turn.content} for turn in request.history
                )

        if request.attachments:
            content: Any = [{"type": "text", "text": request.user_text}]
            for attachment in request.attachments:
                encoded = base64.b64encode(attachment.data).decode("ascii")
                content.append({
                    "type": "image_url",
                    "image_url": {"url": f"data:{attachment.mime_type};base64,{encoded}"},
                })
        else:
            content = request.user_text
        messages.append({"role": "user", "content": content})

        payload: Dict[str, Any] = {"model": request.model_id, "messages": messages}
        if request.options.get("temperature") is not None:
            payload["temperature"] = request.options["temperature"]
        if request.options.get("max_tokens") is not None:
            payload["max_tokens"] = request.options["max_tokens"]
        return payload

    async def invoke(self, model_id: str, request: ProviderRequest) -> AdapterResult:
        payload = self.serialize(request)
        payload["model"] = model_id
        url = f"{self.base_url}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        start_time = time.time()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.warning(
                "%s call for %s failed at transport level: %s",
                self.backend, model_id, str(e),
            )
            raise ProviderCallError(
                status=None,
                message=f"{type(e).__name__}: {e}",
                model_id=model_id,
            ) from e

        duration_ms = (time.time() - start_time) * 1000
        metadata: Dict[str, Any] = {
            name: response.headers[name] for name in CAPTURED_HEADERS if name in response.headers
        }

        if response.status_code >= 400:
            detail = response.text[:200]
            logger.warning(
                "%s model %s returned HTTP %d after %.0fms (headers=%s): %s",
                self.backend, model_id, response.status_code, duration_ms, metadata, detail,
            )
            raise ProviderCallError(
                status=response.status_code,
                message=detail or response.reason_phrase,
                model_id=model_id,
                metadata=metadata,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderCallError(
                status=response.status_code,
                message=f"Invalid JSON from {self.backend}: {e}",
                model_id=model_id,
                metadata=metadata,
            ) from e

        metadata["usage"] = normalize_usage(data.get("usage") if isinstance(data, dict) else None)
        if isinstance(data, dict) and data.get("model"):
            metadata["served_model"] = data["model"]

        extracted = extract_text(data)
        if extracted is None:
            logger.warning(
                "%s model %s returned no extractable text after %.0fms",
                self.backend, model_id, duration_ms,
            )
            raise ProviderCallError(
                status=None,
                message=f"No valid text response received from {self.backend}.",
                model_id=model_id,
                kind="empty_response",
                metadata=metadata,
            )

        logger.info(
            "%s model %s answered in %.0fms, %d chars (metadata=%s)",
            self.backend, model_id, duration_ms, len(extracted.text), metadata,
        )
        return AdapterResult(
            text=extracted.text,
            model_id=model_id,
            source=extracted.source.value,
            metadata=metadata,
        )
