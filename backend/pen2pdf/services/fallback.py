"""
Pen2PDF Backend: Model Fallback Orchestrator
==============================================

What:  Tries candidate models one after another until one answers.
How:   resolve_with_fallback() is a generic higher-order routine: it gets the
       candidates, a coroutine that performs one attempt, and a function that
       classifies a failure. Request shaping and provider choice live in the
       attempt function (see GenerationService).

State machine (one instance per top-level call, nothing shared):

    Pending(0) ──attempt ok──────────────▶ Success(value, model)
        │
        ├─ retryable failure ──▶ Pending(i + 1)   (no delay)
        │                             │
        │                             └─ no candidates left ──▶ Exhausted(last)
        │
        └─ non-retryable failure ──────────────────────────────▶ Exhausted(last)

Failure classification (classify_failure):

    | Kind                | Status  | Message contains                          | Action |
    |---------------------|---------|-------------------------------------------|--------|
    | NOT_FOUND           | 404     | not found, unsupported, does not support  | next   |
    | RATE_LIMITED        | 429     | quota, rate limit                         | next   |
    | SERVICE_UNAVAILABLE | 503     | overloaded, unavailable                   | next   |
    | EMPTY_RESPONSE      | (set by the adapter)                                | next   |
    | AUTHENTICATION      | 401/403 | api key, unauthorized, permission denied  | stop   |
    | OTHER               | anything else (bad request, network errors)         | stop   |

Candidates are attempted strictly sequentially in ascending priority order,
each at most once.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

from pen2pdf.exceptions import ProviderCallError
from pen2pdf.services.model_catalog import ModelDescriptor

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FailureKind(str, Enum):
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    SERVICE_UNAVAILABLE = "service_unavailable"
    EMPTY_RESPONSE = "empty_response"
    AUTHENTICATION = "authentication"
    OTHER = "other"


RETRYABLE_KINDS = frozenset({
    FailureKind.NOT_FOUND,
    FailureKind.RATE_LIMITED,
    FailureKind.SERVICE_UNAVAILABLE,
    FailureKind.EMPTY_RESPONSE,
})

_NOT_FOUND_MARKERS = ("not found", "unsupported", "does not support", "text parameter")
_RATE_LIMIT_MARKERS = ("quota", "rate limit")
_UNAVAILABLE_MARKERS = ("overloaded", "unavailable")
_AUTH_MARKERS = ("api key", "unauthorized", "permission denied", "invalid credentials")


def classify_failure(status: Optional[int], message: Optional[str]) -> FailureKind:
    """
    Maps an HTTP status and raw provider message to a FailureKind.

    Pure function. The status wins when it is one of the known codes;
    otherwise lowercased substrings of the message decide.
    """
    msg = (message or "").lower()

    if status == 404:
        return FailureKind.NOT_FOUND
    if status == 429:
        return FailureKind.RATE_LIMITED
    if status == 503:
        return FailureKind.SERVICE_UNAVAILABLE
    if status in (401, 403):
        return FailureKind.AUTHENTICATION

    if any(marker in msg for marker in _RATE_LIMIT_MARKERS):
        return FailureKind.RATE_LIMITED
    if any(marker in msg for marker in _UNAVAILABLE_MARKERS):
        return FailureKind.SERVICE_UNAVAILABLE
    if any(marker in msg for marker in _NOT_FOUND_MARKERS):
        return FailureKind.NOT_FOUND
    if any(marker in msg for marker in _AUTH_MARKERS):
        return FailureKind.AUTHENTICATION
    return FailureKind.OTHER


def classify_exception(exc: BaseException) -> FailureKind:
    """
    Default classifier for resolve_with_fallback().

    ProviderCallError carries status/message (and sometimes a preset kind);
    anything else is read through optional `status`/`code` attributes.
    """
    if isinstance(exc, ProviderCallError):
        if exc.kind is not None:
            return FailureKind(exc.kind)
        return classify_failure(exc.status, exc.message)

    status = getattr(exc, "status", None)
    if not isinstance(status, int):
        status = getattr(exc, "code", None)
    if not isinstance(status, int):
        status = None
    return classify_failure(status, str(exc))


@dataclass
class FallbackAttempt:
    """One candidate tried during a call resolution. Discarded afterwards."""

    candidate: ModelDescriptor
    kind: Optional[FailureKind]  # None means success
    duration_ms: float
    started_at: float
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.kind is None


@dataclass
class FallbackSuccess(Generic[T]):
    value: T
    candidate: ModelDescriptor
    attempts: List[FallbackAttempt] = field(default_factory=list)

    @property
    def model_used(self) -> str:
        return self.candidate.id

    @property
    def attempted_models(self) -> List[str]:
        return [a.candidate.id for a in self.attempts]


class FallbackExhausted(Exception):
    """
    Terminal failure of a call resolution.

    Raised when a non-retryable failure stops the loop or when every candidate
    failed with a retryable kind. `last_error` is the last observed failure.
    """

    def __init__(
        self,
        last_error: Optional[BaseException],
        last_kind: FailureKind,
        attempts: List[FallbackAttempt],
    ):
        self.last_error = last_error
        self.last_kind = last_kind
        self.attempts = attempts
        super().__init__(
            f"All candidate models failed ({', '.join(self.attempted_models) or 'none'}); "
            f"last failure: {last_kind.value}: {last_error}"
        )

    @property
    def attempted_models(self) -> List[str]:
        return [a.candidate.id for a in self.attempts]

    @property
    def last_model(self) -> Optional[str]:
        return self.attempts[-1].candidate.id if self.attempts else None

    @property
    def aborted(self) -> bool:
        """True when the loop stopped early on a non-retryable failure."""
        return self.last_kind not in RETRYABLE_KINDS


async def resolve_with_fallback(
    candidates: Sequence[ModelDescriptor],
    attempt_fn: Callable[[ModelDescriptor], Awaitable[T]],
    classify_fn: Callable[[BaseException], FailureKind] = classify_exception,
) -> FallbackSuccess[T]:
    """
    Runs attempt_fn against each candidate in ascending priority order.

    Args:
        candidates:  Candidate models; sorted by `priority` before iterating,
                     duplicate ids are skipped.
        attempt_fn:  Performs one attempt; returns the value or raises.
        classify_fn: Maps a raised exception to a FailureKind.

    Returns:
        FallbackSuccess with the value and the candidate that produced it.

    Raises:
        FallbackExhausted: first non-retryable failure, or all candidates failed.
    """
    ordered = sorted(candidates, key=lambda c: c.priority)
    attempts: List[FallbackAttempt] = []
    seen = set()
    last_error: Optional[BaseException] = None
    last_kind = FailureKind.OTHER

    for candidate in ordered:
        if candidate.id in seen:
            continue
        seen.add(candidate.id)

        started = time.time()
        logger.info("Trying model %s (priority %d)", candidate.id, candidate.priority)
        try:
            value = await attempt_fn(candidate)
        except Exception as exc:
            duration_ms = (time.time() - started) * 1000
            kind = classify_fn(exc)
            attempts.append(FallbackAttempt(
                candidate=candidate,
                kind=kind,
                duration_ms=duration_ms,
                started_at=started,
                error=exc,
            ))
            last_error, last_kind = exc, kind

            if kind in RETRYABLE_KINDS:
                logger.warning(
                    "Model %s failed after %.0fms (%s), trying next model: %s",
                    candidate.id, duration_ms, kind.value, exc,
                )
                continue

            logger.error(
                "Model %s failed after %.0fms with non-retryable error (%s), stopping: %s",
                candidate.id, duration_ms, kind.value, exc,
            )
            raise FallbackExhausted(last_error, last_kind, attempts)

        duration_ms = (time.time() - started) * 1000
        attempts.append(FallbackAttempt(
            candidate=candidate,
            kind=None,
            duration_ms=duration_ms,
            started_at=started,
        ))
        logger.info(
            "Model %s succeeded in %.0fms after %d attempt(s)",
            candidate.id, duration_ms, len(attempts),
        )
        return FallbackSuccess(value=value, candidate=candidate, attempts=attempts)

    raise FallbackExhausted(last_error, last_kind, attempts)
