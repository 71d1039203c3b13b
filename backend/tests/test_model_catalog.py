"""
Pen2PDF Backend: Model Catalog Tests
======================================

What we test:
    ✅ Candidate order: preferred model first, no repeats, priority = position
    ✅ LongCat ids routed to the longcat backend from any task
    ✅ Provider inference and display names
    ✅ refresh() replaces a list, and keeps it on failure or empty result
    ✅ Default catalog built from settings
"""

from unittest.mock import AsyncMock

import pytest

from pen2pdf.config import Settings
from pen2pdf.exceptions import ValidationError
from pen2pdf.services.model_catalog import (
    ModelDescriptor,
    build_default_catalog,
    infer_provider,
    prettify_model_name,
)


class TestCandidates:

    def test_task_order_is_priority(self, tiny_catalog):
        result = tiny_catalog.candidates_for("notes-generation")
        assert [c.id for c in result] == ["gemini-2.5-pro", "gemini-2.5-flash"]
        assert [c.priority for c in result] == [0, 1]
        assert all(c.backend == "gemini" for c in result)

    def test_preferred_model_goes_first_without_repeat(self, tiny_catalog):
        result = tiny_catalog.candidates_for("notes-generation", preferred="gemini-2.5-flash")
        assert [c.id for c in result] == ["gemini-2.5-flash", "gemini-2.5-pro"]

    def test_empty_task_list_uses_only_the_preferred_model(self, tiny_catalog):
        result = tiny_catalog.candidates_for("github-chat", preferred="gpt-4o")
        assert [(c.id, c.backend) for c in result] == [("gpt-4o", "github")]
        assert tiny_catalog.candidates_for("github-chat") == []

    def test_longcat_ids_route_to_longcat(self, tiny_catalog):
        result = tiny_catalog.candidates_for("chat", preferred="longcat-flash-chat")
        assert result[0].backend == "longcat"
        assert result[1].backend == "gemini"

    def test_unknown_task(self, tiny_catalog):
        with pytest.raises(ValidationError) as exc_info:
            tiny_catalog.candidates_for("poetry")
        assert exc_info.value.reason == "unknown_task"


class TestDescriptors:

    @pytest.mark.parametrize("model_id,provider", [
        ("gpt-4o", "openai"),
        ("claude-3-5-sonnet", "anthropic"),
        ("gemini-1.5-pro", "google"),
        ("llama-3.3-70b-instruct", "meta"),
        ("mistral-large", "mistral"),
        ("cohere-command-r", "cohere"),
        ("ai21-jamba-1.5-mini", "ai21"),
        ("phi-4", "microsoft"),
        ("longcat-flash-chat", "longcat"),
        ("openai/gpt-4o-mini", "openai"),
        ("meta-llama-3.1-8b-instruct", "meta"),
        ("microsoft/Phi-3.5-MoE-instruct", "microsoft"),
        ("azureml-mistral-nemo", "mistral"),
        ("mystery-model", "unknown"),
    ])
    def test_infer_provider(self, model_id, provider):
        assert infer_provider(model_id) == provider

    def test_prettify(self):
        assert prettify_model_name("openai/gpt-4o-mini") == "Gpt 4o Mini"

    def test_descriptor_carries_file_policy(self):
        descriptor = ModelDescriptor.from_id("gpt-4o", "github")
        assert descriptor.capabilities.images is True
        assert "image/png" in descriptor.file_policy.allowed_mime_types

    def test_list_models_per_backend(self, tiny_catalog):
        github = tiny_catalog.list_models("github")
        assert [d.id for d in github] == ["gpt-4o", "gpt-4o-mini", "mistral-large"]
        assert [d.priority for d in github] == [0, 1, 2]
        assert len(tiny_catalog.list_models()) == 6


class TestRefresh:

    @pytest.mark.asyncio
    async def test_successful_discovery_replaces_list(self, tiny_catalog):
        discover = AsyncMock(return_value=["gemini-3.0-pro", "gemini-3.0-flash"])
        assert await tiny_catalog.refresh("gemini", discover) is True
        assert [d.id for d in tiny_catalog.list_models("gemini")] == [
            "gemini-3.0-pro", "gemini-3.0-flash",
        ]

    @pytest.mark.asyncio
    async def test_failed_discovery_keeps_previous_list(self, tiny_catalog):
        before = [d.id for d in tiny_catalog.list_models("gemini")]
        discover = AsyncMock(side_effect=RuntimeError("network down"))

        assert await tiny_catalog.refresh("gemini", discover) is False
        assert [d.id for d in tiny_catalog.list_models("gemini")] == before

    @pytest.mark.asyncio
    async def test_empty_discovery_keeps_previous_list(self, tiny_catalog):
        before = [d.id for d in tiny_catalog.list_models("gemini")]
        assert await tiny_catalog.refresh("gemini", AsyncMock(return_value=[])) is False
        assert [d.id for d in tiny_catalog.list_models("gemini")] == before


class TestDefaultCatalog:

    def test_tasks_come_from_settings(self):
        config = Settings(
            notes_generation_models="gemini-2.5-pro, gemini-2.0-flash-lite",
            github_chat_models="",
        )
        catalog = build_default_catalog(config)

        assert [c.id for c in catalog.candidates_for("notes-generation")] == [
            "gemini-2.5-pro", "gemini-2.0-flash-lite",
        ]
        assert catalog.candidates_for("github-chat") == []
        assert set(catalog.task_names) == {
            "text-extraction", "notes-generation", "chat", "github-chat",
        }
        assert "gpt-4o" in [d.id for d in catalog.list_models("github")]
