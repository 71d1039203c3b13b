"""
Pen2PDF Backend: Response Text Extraction
===========================================

What:  Pulls the answer text out of a provider response, whatever envelope
       the provider or SDK version used.
How:   An ordered tuple of extractor functions, tried in sequence. The first
       non-empty match wins and is tagged with the shape it came from.
Who:   Both provider adapters call extract_text() on the raw response.

Known shapes, in priority order:
    DIRECT_TEXT         response.text  /  {"text": "..."}
    NESTED_CANDIDATES   candidates[0].content.parts[*].text
    CHAT_CHOICES        choices[0].message.content
    RESPONSES_OUTPUT    output[0].content[0].text

Responses may be SDK objects (attribute access) or decoded JSON (dict access);
_field() reads either.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Sequence, Tuple


class ExtractionSource(str, Enum):
    DIRECT_TEXT = "direct_text"
    NESTED_CANDIDATES = "nested_candidates"
    CHAT_CHOICES = "chat_choices"
    RESPONSES_OUTPUT = "responses_output"


@dataclass(frozen=True)
class ExtractedText:
    text: str
    source: ExtractionSource


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    try:
        return getattr(obj, name, None)
    except ValueError:
        # The Gemini SDK's .text accessor raises when the candidate has no parts
        return None


def _first(items: Any) -> Any:
    if not items:
        return None
    try:
        return items[0]
    except (IndexError, KeyError, TypeError):
        return None


def _clean(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _direct_text(response: Any) -> Optional[str]:
    return _clean(_field(response, "text"))


def _nested_candidates(response: Any) -> Optional[str]:
    content = _field(_first(_field(response, "candidates")), "content")
    parts = _field(content, "parts") or []
    texts = [_field(part, "text") for part in parts]
    return _clean("".join(t for t in texts if isinstance(t, str)))


def _chat_choices(response: Any) -> Optional[str]:
    message = _field(_first(_field(response, "choices")), "message")
    content = _field(message, "content")
    if isinstance(content, list):
        # Some OpenAI-compatible servers return content as typed parts
        content = "".join(
            _field(part, "text") or "" for part in content if _field(part, "type") == "text"
        )
    return _clean(content)


def _responses_output(response: Any) -> Optional[str]:
    content = _field(_first(_field(response, "output")), "content")
    return _clean(_field(_first(content), "text"))


EXTRACTORS: Sequence[Tuple[ExtractionSource, Callable[[Any], Optional[str]]]] = (
    (ExtractionSource.DIRECT_TEXT, _direct_text),
    (ExtractionSource.NESTED_CANDIDATES, _nested_candidates),
    (ExtractionSource.CHAT_CHOICES, _chat_choices),
    (ExtractionSource.RESPONSES_OUTPUT, _responses_output),
)


def extract_text(response: Any) -> Optional[ExtractedText]:
    """
    Returns the first non-empty text found, or None when no extractor matched.

    None is treated by the adapters as an EMPTY_RESPONSE failure.
    """
    for source, extractor in EXTRACTORS:
        text = extractor(response)
        if text is not None:
            return ExtractedText(text=text, source=source)
    return None
