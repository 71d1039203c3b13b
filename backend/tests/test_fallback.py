"""
Pen2PDF Backend: Fallback Orchestrator Tests
==============================================

What we test:
    ✅ classify_failure: status codes first, then message markers
    ✅ Attempt counts: first success, k retryable failures, all fail, stop early
    ✅ Ordering by priority, duplicate ids attempted once
    ✅ Empty-response kind preset by the adapter is honoured
"""

import pytest

from pen2pdf.exceptions import ProviderCallError
from pen2pdf.services.fallback import (
    FailureKind,
    FallbackExhausted,
    RETRYABLE_KINDS,
    classify_exception,
    classify_failure,
    resolve_with_fallback,
)
from pen2pdf.services.model_catalog import ModelDescriptor


def candidates(*ids):
    return [ModelDescriptor.from_id(model_id, "gemini", position) for position, model_id in enumerate(ids)]


class Recorder:
    """attempt_fn that follows a script of outcomes per model id."""

    def __init__(self, outcomes):
        self.outcomes = outcomes
        self.calls = []

    async def __call__(self, candidate):
        self.calls.append(candidate.id)
        outcome = self.outcomes[candidate.id]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class TestClassifyFailure:

    @pytest.mark.parametrize("status,kind", [
        (404, FailureKind.NOT_FOUND),
        (429, FailureKind.RATE_LIMITED),
        (503, FailureKind.SERVICE_UNAVAILABLE),
        (401, FailureKind.AUTHENTICATION),
        (403, FailureKind.AUTHENTICATION),
        (400, FailureKind.OTHER),
        (500, FailureKind.OTHER),
    ])
    def test_status_codes(self, status, kind):
        assert classify_failure(status, "") == kind

    @pytest.mark.parametrize("message,kind", [
        ("models/gemini-9 is not found for API version v1beta", FailureKind.NOT_FOUND),
        ("Model does not support image input", FailureKind.NOT_FOUND),
        ("Unsupported model", FailureKind.NOT_FOUND),
        ("Resource has been exhausted (e.g. check quota).", FailureKind.RATE_LIMITED),
        ("Rate limit exceeded", FailureKind.RATE_LIMITED),
        ("The model is overloaded. Please try again later.", FailureKind.SERVICE_UNAVAILABLE),
        ("Service Unavailable", FailureKind.SERVICE_UNAVAILABLE),
        ("API key not valid. Please pass a valid API key.", FailureKind.AUTHENTICATION),
        ("Invalid JSON payload received", FailureKind.OTHER),
    ])
    def test_message_markers(self, message, kind):
        assert classify_failure(None, message) == kind

    def test_status_wins_over_message(self):
        assert classify_failure(429, "model not found") == FailureKind.RATE_LIMITED

    def test_preset_kind_on_provider_error(self):
        error = ProviderCallError(None, "No valid text", "m1", kind="empty_response")
        assert classify_exception(error) == FailureKind.EMPTY_RESPONSE

    def test_plain_exception_uses_code_attribute(self):
        class SdkError(Exception):
            code = 503

        assert classify_exception(SdkError("boom")) == FailureKind.SERVICE_UNAVAILABLE

    def test_authentication_and_other_are_not_retryable(self):
        assert FailureKind.AUTHENTICATION not in RETRYABLE_KINDS
        assert FailureKind.OTHER not in RETRYABLE_KINDS
        assert FailureKind.EMPTY_RESPONSE in RETRYABLE_KINDS


class TestResolveWithFallback:

    @pytest.mark.asyncio
    async def test_first_candidate_succeeds_with_one_call(self):
        attempt = Recorder({"m1": "ok", "m2": "unused"})
        result = await resolve_with_fallback(candidates("m1", "m2"), attempt)

        assert result.value == "ok"
        assert result.model_used == "m1"
        assert attempt.calls == ["m1"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("k", [1, 2, 3])
    async def test_k_retryable_failures_then_success(self, k):
        ids = [f"m{i}" for i in range(5)]
        outcomes = {model_id: ProviderCallError(503, "overloaded", model_id) for model_id in ids[:k]}
        outcomes.update({model_id: f"answer from {model_id}" for model_id in ids[k:]})
        attempt = Recorder(outcomes)

        result = await resolve_with_fallback(candidates(*ids), attempt)

        assert len(attempt.calls) == k + 1
        assert result.model_used == ids[k]
        assert result.attempted_models == ids[: k + 1]

    @pytest.mark.asyncio
    async def test_all_retryable_failures_try_every_candidate(self):
        ids = ["m1", "m2", "m3"]
        attempt = Recorder({
            "m1": ProviderCallError(404, "not found", "m1"),
            "m2": ProviderCallError(429, "quota", "m2"),
            "m3": ProviderCallError(None, "empty", "m3", kind="empty_response"),
        })

        with pytest.raises(FallbackExhausted) as exc_info:
            await resolve_with_fallback(candidates(*ids), attempt)

        assert attempt.calls == ids
        assert exc_info.value.attempted_models == ids
        assert exc_info.value.last_kind == FailureKind.EMPTY_RESPONSE
        assert exc_info.value.last_model == "m3"
        assert not exc_info.value.aborted

    @pytest.mark.asyncio
    @pytest.mark.parametrize("i", [0, 1, 2])
    async def test_non_retryable_failure_stops_after_i_plus_one_calls(self, i):
        ids = ["m0", "m1", "m2", "m3"]
        outcomes = {model_id: ProviderCallError(503, "unavailable", model_id) for model_id in ids}
        outcomes[ids[i]] = ProviderCallError(401, "invalid api key", ids[i])
        attempt = Recorder(outcomes)

        with pytest.raises(FallbackExhausted) as exc_info:
            await resolve_with_fallback(candidates(*ids), attempt)

        assert len(attempt.calls) == i + 1
        assert exc_info.value.last_kind == FailureKind.AUTHENTICATION
        assert exc_info.value.aborted

    @pytest.mark.asyncio
    async def test_candidates_tried_in_priority_order_without_repeats(self):
        unordered = [
            ModelDescriptor.from_id("late", "gemini", 2),
            ModelDescriptor.from_id("early", "gemini", 0),
            ModelDescriptor.from_id("early", "gemini", 1),
        ]
        attempt = Recorder({
            "early": ProviderCallError(404, "not found", "early"),
            "late": ProviderCallError(404, "not found", "late"),
        })

        with pytest.raises(FallbackExhausted):
            await resolve_with_fallback(unordered, attempt)

        assert attempt.calls == ["early", "late"]

    @pytest.mark.asyncio
    async def test_no_candidates_is_exhausted_immediately(self):
        attempt = Recorder({})
        with pytest.raises(FallbackExhausted) as exc_info:
            await resolve_with_fallback([], attempt)
        assert attempt.calls == []
        assert exc_info.value.attempted_models == []

    @pytest.mark.asyncio
    async def test_each_resolution_starts_fresh(self):
        outcomes = {"m1": ProviderCallError(503, "unavailable", "m1"), "m2": "ok"}
        first = Recorder(outcomes)
        second = Recorder(outcomes)

        await resolve_with_fallback(candidates("m1", "m2"), first)
        result = await resolve_with_fallback(candidates("m1", "m2"), second)

        assert second.calls == ["m1", "m2"]
        assert result.attempted_models == ["m1", "m2"]
