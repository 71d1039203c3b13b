"""
Pen2PDF Backend: Google Gemini Adapter
========================================

What:  ProviderAdapter for the structured-turn wire protocol, through the
       google-generativeai SDK.
How:   serialize() builds the "contents" array (history as user/model turns,
       then the current user turn with inline attachments). invoke() creates
       a GenerativeModel for the candidate id, makes exactly one
       generate_content_async call and extracts text from whichever response
       envelope came back.
Who:   Instantiated once at app startup; GenerationService calls it for every
       candidate whose backend is "gemini".

Wire shape produced by serialize():
    {
        "model": "gemini-2.5-flash",
        "system_instruction": "...",
        "contents": [
            {"role": "user",  "parts": [{"text": "..."}]},
            {"role": "model", "parts": [{"text": "..."}]},
            {"role": "user",  "parts": [{"text": "..."},
                                        {"inline_data": {"mime_type": "image/png",
                                                         "data": b"..."}}]}
        ],
        "generation_config": {"temperature": 0.2, "max_output_tokens": 2048}
    }

Error mapping:
    SDK exceptions (google.api_core) expose the HTTP status as `.code`.
    Every failure is re-raised as ProviderCallError(status, message) for the
    fallback layer to classify. No retries happen here.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import google.generativeai as genai

from pen2pdf.config import settings
from pen2pdf.exceptions import ProviderCallError
from pen2pdf.services.extraction import extract_text
from pen2pdf.services.llm_base import AdapterResult, ProviderAdapter, ProviderRequest

logger = logging.getLogger(__name__)


def _status_of(exc: Exception) -> Optional[int]:
    """HTTP status carried by a google.api_core exception, if any."""
    code = getattr(exc, "code", None)
    if isinstance(code, int):
        return code
    # grpc StatusCode enums carry (number, name); only HTTP ints are useful here
    return None


class GeminiAdapter(ProviderAdapter):
    """Structured-turn adapter for Gemini models."""

    backend = "gemini"
    credential_name = "GEMINI_API_KEY"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = settings.gemini_api_key if api_key is None else api_key
        self.timeout = timeout or settings.provider_timeout_seconds

        # The SDK keeps auth in module-level state
        if self.api_key:
            genai.configure(api_key=self.api_key)

        logger.info(
            "GeminiAdapter initialized (configured=%s, timeout=%.0fs)",
            self.is_configured(),
            self.timeout,
        )

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def serialize(self, request: ProviderRequest) -> Dict[str, Any]:
        contents: List[Dict[str, Any]] = []
        # Gemini has no system role in `contents`; system turns join the instruction
        system_parts = [request.system_instruction] if request.system_instruction else []

        for turn in request.history:
            if turn.role == "system":
                system_parts.append(turn.content)
                continue
            contents.append({
                "role": "model" if turn.role == "assistant" else "user",
                "parts": [{"text": turn.content}],
            })

        parts: List[Dict[str, Any]] = []
        if request.user_text:
            parts.append({"text": request.user_text})
        for attachment in request.attachments:
            parts.append({
                "inline_data": {
                    "mime_type": attachment.mime_type,
                    "data": attachment.data,
                }
            })
        contents.append({"role": "user", "parts": parts})

        generation_config: Dict[str, Any] = {}
        if request.options.get("temperature") is not None:
            generation_config["temperature"] = request.options["temperature"]
        if request.options.get("max_tokens") is not None:
            generation_config["max_output_tokens"] = request.options["max_tokens"]

        return {
            "model": request.model_id,
            "system_instruction": "\n\n".join(system_parts),
            "contents": contents,
            "generation_config": generation_config,
        }

    async def invoke(self, model_id: str, request: ProviderRequest) -> AdapterResult:
        payload = self.serialize(request)
        start_time = time.time()

        try:
            model = genai.GenerativeModel(
                model_id,
                system_instruction=payload["system_instruction"],
            )
            response = await model.generate_content_async(
                payload["contents"],
                generation_config=payload["generation_config"] or None,
                request_options={"timeout": self.timeout},
            )
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.warning(
                "Gemini call for %s failed after %.0fms: %s",
                model_id, duration_ms, str(e),
            )
            raise ProviderCallError(
                status=_status_of(e),
                message=str(e),
                model_id=model_id,
            ) from e

        duration_ms = (time.time() - start_time) * 1000
        metadata = self._usage_of(response)

        extracted = extract_text(response)
        if extracted is None:
            logger.warning(
                "Gemini model %s returned no extractable text after %.0fms",
                model_id, duration_ms,
            )
            raise ProviderCallError(
                status=None,
                message="No valid text response received from Gemini.",
                model_id=model_id,
                kind="empty_response",
                metadata=metadata,
            )

        logger.info(
            "Gemini model %s answered in %.0fms, %d chars via %s (usage=%s)",
            model_id, duration_ms, len(extracted.text), extracted.source.value, metadata,
        )
        return AdapterResult(
            text=extracted.text,
            model_id=model_id,
            source=extracted.source.value,
            metadata=metadata,
        )

    @staticmethod
    def _usage_of(response: Any) -> Dict[str, Any]:
        usage = getattr(response, "usage_metadata", None)
        if usage is None:
            return {}
        values = {
            "prompt_tokens": getattr(usage, "prompt_token_count", None),
            "completion_tokens": getattr(usage, "candidates_token_count", None),
            "total_tokens": getattr(usage, "total_token_count", None),
        }
        return {"usage": {k: v for k, v in values.items() if isinstance(v, int)}}
