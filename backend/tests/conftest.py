"""
Pen2PDF Backend: Test Configuration (conftest.py)
===================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Environment overrides are applied BEFORE any pen2pdf import, so the
       settings singleton and the engine are built from test values.

Fixtures:
    ├── mock_db_session:  AsyncMock of AsyncSession (no real DB)
    ├── fake_adapter:     factory for scripted ProviderAdapters
    ├── tiny_catalog:     deterministic ModelCatalog with short lists
    ├── png_bytes:        header bytes of a PNG image
    └── test_client:      HTTPX AsyncClient bound to a fresh app
"""

import os

# Override settings for testing BEFORE any app imports.
# A file URL: the engine is created at import but never connects in unit tests.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["GEMINI_API_KEY"] = "test-gemini-key"
os.environ["GITHUB_MODELS_PAT"] = "test-github-pat"
os.environ["LONGCAT_API_KEY"] = "test-longcat-key"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["MODEL_DISCOVERY_ENABLED"] = "false"

from typing import Any, Callable, Dict, List, Optional, Sequence
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from pen2pdf.exceptions import ProviderCallError
from pen2pdf.services.llm_base import AdapterResult, ProviderAdapter, ProviderRequest
from pen2pdf.services.model_catalog import ModelCatalog, TaskProfile


class ScriptedAdapter(ProviderAdapter):
    """
    ProviderAdapter whose outcome per model id is scripted.

    outcomes maps model id → text (success) or an exception to raise.
    Every call is recorded in `calls` as (model_id, ProviderRequest).
    """

    def __init__(
        self,
        backend: str,
        outcomes: Dict[str, Any],
        configured: bool = True,
        credential_name: str = "TEST_KEY",
    ):
        self.backend = backend
        self.credential_name = credential_name
        self.outcomes = outcomes
        self.configured = configured
        self.calls: List[tuple] = []

    def is_configured(self) -> bool:
        return self.configured

    def serialize(self, request: ProviderRequest) -> Dict[str, Any]:
        return {"model": request.model_id, "text": request.user_text}

    async def invoke(self, model_id: str, request: ProviderRequest) -> AdapterResult:
        self.calls.append((model_id, request))
        outcome = self.outcomes.get(model_id, ProviderCallError(404, "model not found", model_id))
        if isinstance(outcome, BaseException):
            raise outcome
        return AdapterResult(
            text=outcome,
            model_id=model_id,
            source="direct_text",
            metadata={"usage": {"prompt_tokens": 3, "completion_tokens": 5, "total_tokens": 8}},
        )

    @property
    def called_models(self) -> List[str]:
        return [model_id for model_id, _ in self.calls]


@pytest.fixture
def fake_adapter() -> Callable[..., ScriptedAdapter]:
    """
    Usage:
        adapter = fake_adapter("gemini", {"m1": ProviderCallError(503, "x"), "m2": "Hello"})
    """
    return ScriptedAdapter


def make_catalog(
    candidates: Optional[Dict[str, Sequence[str]]] = None,
    models: Optional[Dict[str, Sequence[str]]] = None,
) -> ModelCatalog:
    candidates = candidates or {}
    backends = {
        "text-extraction": "gemini",
        "notes-generation": "gemini",
        "chat": "gemini",
        "github-chat": "github",
    }
    tasks = [
        TaskProfile(
            name=name,
            system_instruction=f"You are the {name} assistant.",
            backend=backend,
            candidates=tuple(candidates.get(name, ())),
        )
        for name, backend in backends.items()
    ]
    return ModelCatalog(
        models=models or {
            "gemini": ["gemini-2.5-flash", "gemini-2.0-flash"],
            "github": ["gpt-4o", "gpt-4o-mini", "mistral-large"],
            "longcat": ["longcat-flash-chat"],
        },
        tasks=tasks,
    )


@pytest.fixture
def catalog_factory() -> Callable[..., ModelCatalog]:
    return make_catalog


@pytest.fixture
def tiny_catalog() -> ModelCatalog:
    return make_catalog({
        "text-extraction": ["gemini-2.5-flash", "gemini-2.0-flash"],
        "notes-generation": ["gemini-2.5-pro", "gemini-2.5-flash"],
        "chat": ["gemini-2.5-flash"],
        "github-chat": [],
    })


@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        mock_db_session.execute.return_value = MagicMock(
            scalar_one_or_none=MagicMock(return_value=row)
        )
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.delete = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def png_bytes() -> bytes:
    """PNG signature plus an IHDR chunk header; enough for libmagic to say image/png."""
    return (
        b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"
        b"\x08\x02\x00\x00\x00\x90wS\xde"
    )


@pytest.fixture
def app():
    """Fresh app per test (fresh rate-limit counters, no dependency overrides)."""
    from pen2pdf.main import create_app

    return create_app()


@pytest_asyncio.fixture
async def test_client(app):
    """
    HTTPX AsyncClient routed straight into the app. Lifespan does not run,
    so tests set app.dependency_overrides for the services they need.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
