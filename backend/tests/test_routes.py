"""
Pen2PDF Backend: API Route Tests
==================================

What:  HTTP-level tests through httpx's ASGITransport.
How:   GenerationService runs for real over scripted adapters; the catalog
       and the chat service are swapped in with app.dependency_overrides.

What we test:
    ✅ /textExtract and /notesGenerate answer with the model that served them
    ✅ Error mapping: 400 validation, 429 rate limit, 500 configuration, 502 provider
    ✅ GitHub Models list and chat, with the file policy checked first
    ✅ Chat history, message and clear
    ✅ Notes library, todos, whiteboard envelopes
    ✅ Health status levels
"""

import base64
import json
import logging
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from pen2pdf.config import Settings
from pen2pdf.database import get_db_session
from pen2pdf.dependencies import get_chat_service, get_generation_service, get_model_catalog
from pen2pdf.exceptions import NotFoundError, ProviderCallError
from pen2pdf.services.chat_completions_service import ChatCompletionsAdapter
from pen2pdf.services.generation_service import GenerationService

CONFIG = Settings(generation_deadline_seconds=None)
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def use_generation(app, catalog, **adapters) -> GenerationService:
    generation = GenerationService(catalog, adapters, CONFIG)
    app.dependency_overrides[get_generation_service] = lambda: generation
    app.dependency_overrides[get_model_catalog] = lambda: catalog
    return generation


def now():
    return datetime.now(timezone.utc)


# ══════════════════════════════════════════════════════════════════════════
# Text extraction & notes generation
# ══════════════════════════════════════════════════════════════════════════

class TestTextExtract:

    @pytest.mark.asyncio
    async def test_falls_back_and_names_the_model(self, app, test_client, tiny_catalog, fake_adapter, png_bytes):
        gemini = fake_adapter("gemini", {
            "gemini-2.5-flash": ProviderCallError(503, "The model is overloaded"),
            "gemini-2.0-flash": "Hello",
        })
        use_generation(app, tiny_catalog, gemini=gemini)

        response = await test_client.post(
            "/textExtract",
            files={"file": ("page.png", png_bytes, "image/png")},
        )

        assert response.status_code == 200
        assert response.json() == {"text": "Hello", "modelUsed": "gemini-2.0-flash"}
        assert gemini.called_models == ["gemini-2.5-flash", "gemini-2.0-flash"]

    @pytest.mark.asyncio
    async def test_prompt_only(self, app, test_client, tiny_catalog, fake_adapter):
        gemini = fake_adapter("gemini", {"gemini-2.5-flash": "42"})
        use_generation(app, tiny_catalog, gemini=gemini)

        response = await test_client.post("/textExtract", data={"prompt": "What is 6 x 7?"})

        assert response.status_code == 200
        assert response.json()["text"] == "42"
        _, request = gemini.calls[0]
        assert request.user_text == "What is 6 x 7?"
        assert request.attachments == []

    @pytest.mark.asyncio
    async def test_no_file_no_prompt_is_400(self, app, test_client, tiny_catalog, fake_adapter):
        gemini = fake_adapter("gemini", {})
        use_generation(app, tiny_catalog, gemini=gemini)

        response = await test_client.post("/textExtract", data={"prompt": "  "})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["details"]["reason"] == "missing_input"
        assert gemini.calls == []

    @pytest.mark.asyncio
    async def test_missing_key_is_configuration_error(self, app, test_client, tiny_catalog, fake_adapter):
        gemini = fake_adapter("gemini", {}, configured=False, credential_name="GEMINI_API_KEY")
        use_generation(app, tiny_catalog, gemini=gemini)

        response = await test_client.post("/textExtract", data={"prompt": "hi"})

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "configuration_error"
        assert body["details"] == {"missing": ["GEMINI_API_KEY"]}

    @pytest.mark.asyncio
    async def test_bad_request_is_502(self, app, test_client, tiny_catalog, fake_adapter):
        gemini = fake_adapter("gemini", {"gemini-2.5-flash": ProviderCallError(400, "Invalid argument")})
        use_generation(app, tiny_catalog, gemini=gemini)

        response = await test_client.post("/textExtract", data={"prompt": "hi"})

        assert response.status_code == 502
        assert response.json()["error"] == "provider_error"
        assert "Invalid argument" not in response.text

    @pytest.mark.asyncio
    async def test_uninitialized_layer_is_configuration_error(self, test_client):
        response = await test_client.post("/textExtract", data={"prompt": "hi"})
        assert response.status_code == 500
        assert response.json()["error"] == "configuration_error"


class TestNotesGenerate:

    @pytest.mark.asyncio
    async def test_preferred_model_and_retry_instruction(self, app, test_client, tiny_catalog, fake_adapter, png_bytes):
        gemini = fake_adapter("gemini", {"gemini-2.5-flash": "# Notes"})
        use_generation(app, tiny_catalog, gemini=gemini)

        response = await test_client.post(
            "/notesGenerate",
            files=[
                ("files", ("week1.png", png_bytes, "image/png")),
                ("files", ("week2.png", png_bytes, "image/png")),
            ],
            data={"preferredModel": "gemini-2.5-flash", "retryInstruction": "Shorter please"},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "text": "# Notes", "modelUsed": "gemini-2.5-flash"}
        _, request = gemini.calls[0]
        assert len(request.attachments) == 2
        assert "week1.png, week2.png" in request.user_text
        assert request.system_instruction.endswith("Additional instruction: Shorter please")

    @pytest.mark.asyncio
    async def test_every_model_empty_is_502(self, app, test_client, catalog_factory, fake_adapter):
        catalog = catalog_factory({"notes-generation": ["gemini-a", "gemini-b"]})
        gemini = fake_adapter("gemini", {
            "gemini-a": ProviderCallError(None, "no text", "gemini-a", kind="empty_response"),
            "gemini-b": ProviderCallError(None, "no text", "gemini-b", kind="empty_response"),
        })
        use_generation(app, catalog, gemini=gemini)

        response = await test_client.post(
            "/notesGenerate",
            files=[("files", ("scan.pdf", b"%PDF-1.4 test", "application/pdf"))],
        )

        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "empty_response"
        assert body["details"]["attempted_models"] == ["gemini-a", "gemini-b"]


# ══════════════════════════════════════════════════════════════════════════
# GitHub Models
# ══════════════════════════════════════════════════════════════════════════

class TestGithubModels:

    @pytest.mark.asyncio
    async def test_list_models_with_file_policy(self, app, test_client, tiny_catalog, fake_adapter):
        use_generation(app, tiny_catalog, github=fake_adapter("github", {}))

        response = await test_client.get("/api/github-models/models")

        assert response.status_code == 200
        models = response.json()["models"]
        assert [m["id"] for m in models] == ["gpt-4o", "gpt-4o-mini", "mistral-large"]
        gpt4o = models[0]
        assert gpt4o["provider"] == "openai"
        assert gpt4o["capabilities"] == {"text": True, "images": True}
        assert "image/png" in gpt4o["filePolicy"]["allowedMimeTypes"]
        assert DOCX in gpt4o["filePolicy"]["blockedMimeTypes"]
        assert models[2]["filePolicy"]["allowsFiles"] is False
        assert all(m["available"] is True for m in models)

    @pytest.mark.asyncio
    async def test_models_unavailable_without_pat(self, app, test_client, tiny_catalog, fake_adapter):
        use_generation(app, tiny_catalog, github=fake_adapter("github", {}, configured=False))

        response = await test_client.get("/api/github-models/models")

        assert response.status_code == 200
        assert [m["available"] for m in response.json()["models"]] == [False, False, False]

    @pytest.mark.asyncio
    async def test_client_system_message_reaches_the_provider(self, app, test_client, tiny_catalog):
        sent = {}

        def handler(request: httpx.Request) -> httpx.Response:
            sent["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": "Bonjour"}}]})

        github = ChatCompletionsAdapter(
            backend="github",
            base_url="https://models.example.test",
            api_key="secret-pat",
            credential_name="GITHUB_MODELS_PAT",
            transport=httpx.MockTransport(handler),
        )
        use_generation(app, tiny_catalog, github=github)
        messages = [
            {"role": "system", "content": "Answer in French"},
            {"role": "user", "content": "hi"},
        ]

        response = await test_client.post(
            "/api/github-models/chat",
            data={"model": "gpt-4o", "messages": json.dumps(messages)},
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Bonjour"
        assert sent["body"]["messages"][1:] == [
            {"role": "system", "content": "Answer in French"},
            {"role": "user", "content": "hi"},
        ]

    @pytest.mark.asyncio
    async def test_messages_after_last_user_turn_are_logged(self, app, test_client, tiny_catalog, fake_adapter, caplog):
        github = fake_adapter("github", {"gpt-4o": "ok"})
        use_generation(app, tiny_catalog, github=github)
        messages = [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "draft answer"},
        ]

        with caplog.at_level(logging.WARNING, logger="pen2pdf.routes.github_models"):
            response = await test_client.post(
                "/api/github-models/chat",
                data={"model": "gpt-4o", "messages": json.dumps(messages)},
            )

        assert response.status_code == 200
        _, request = github.calls[0]
        assert request.user_text == "hi"
        assert request.history == []
        assert "Dropping 1 message(s) after the last user message (roles: assistant)" in caplog.text

    @pytest.mark.asyncio
    async def test_chat_splits_history_and_reports_usage(self, app, test_client, tiny_catalog, fake_adapter):
        github = fake_adapter("github", {"gpt-4o": "Paris"})
        use_generation(app, tiny_catalog, github=github)
        messages = [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello!"},
            {"role": "user", "content": "Capital of France?"},
        ]

        response = await test_client.post(
            "/api/github-models/chat",
            data={"model": "gpt-4o", "messages": json.dumps(messages), "temperature": "0.2"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Paris"
        assert body["model"] == "gpt-4o"
        assert body["usage"] == {"promptTokens": 3, "completionTokens": 5, "totalTokens": 8}

        _, request = github.calls[0]
        assert request.user_text == "Capital of France?"
        assert [t.content for t in request.history] == ["Hi", "Hello!"]
        assert request.options["temperature"] == 0.2

    @pytest.mark.asyncio
    async def test_docx_refused_before_credential_check(self, app, test_client, tiny_catalog, fake_adapter):
        github = fake_adapter("github", {}, configured=False, credential_name="GITHUB_MODELS_PAT")
        use_generation(app, tiny_catalog, github=github)

        with patch("pen2pdf.services.attachment_service._sniff_mime", return_value=None):
            response = await test_client.post(
                "/api/github-models/chat",
                data={"model": "gpt-4o", "messages": json.dumps([{"role": "user", "content": "sum"}])},
                files={"file": ("notes.docx", b"PK\x03\x04data", DOCX)},
            )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["message"] == f"File type {DOCX} is not allowed for model gpt-4o"
        assert github.calls == []

    @pytest.mark.asyncio
    async def test_rate_limited_model_is_429(self, app, test_client, tiny_catalog, fake_adapter):
        github = fake_adapter("github", {"gpt-4o": ProviderCallError(429, "Rate limit exceeded", "gpt-4o")})
        use_generation(app, tiny_catalog, github=github)

        response = await test_client.post(
            "/api/github-models/chat",
            data={"model": "gpt-4o", "messages": json.dumps([{"role": "user", "content": "hi"}])},
        )

        assert response.status_code == 429
        body = response.json()
        assert body["error"] == "rate_limited"
        assert body["details"]["model"] == "gpt-4o"
        assert "switch to a different model" in body["message"]

    @pytest.mark.asyncio
    async def test_malformed_messages_is_400(self, app, test_client, tiny_catalog, fake_adapter):
        use_generation(app, tiny_catalog, github=fake_adapter("github", {}))

        response = await test_client.post(
            "/api/github-models/chat",
            data={"model": "gpt-4o", "messages": "not json"},
        )

        assert response.status_code == 400
        assert response.json()["details"]["reason"] == "invalid_messages"

    @pytest.mark.asyncio
    async def test_missing_model_is_400(self, app, test_client, tiny_catalog, fake_adapter):
        use_generation(app, tiny_catalog, github=fake_adapter("github", {}))

        response = await test_client.post(
            "/api/github-models/chat",
            data={"messages": json.dumps([{"role": "user", "content": "hi"}])},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"


# ══════════════════════════════════════════════════════════════════════════
# Chat
# ══════════════════════════════════════════════════════════════════════════

def turn(role, content, model=None):
    return {
        "id": str(uuid.uuid4()),
        "role": role,
        "content": content,
        "model": model,
        "timestamp": now().isoformat(),
        "attachments": [],
        "contextNotes": [],
    }


class TestChat:

    @pytest.fixture
    def chat_service(self, app):
        service = MagicMock()
        service.get_or_create_session = AsyncMock()
        service.send_message = AsyncMock()
        service.clear_history = AsyncMock()
        app.dependency_overrides[get_chat_service] = lambda: service
        return service

    @pytest.mark.asyncio
    async def test_history(self, test_client, chat_service):
        chat_service.get_or_create_session.return_value = SimpleNamespace(
            id=uuid.uuid4(),
            messages=[turn("user", "hi"), turn("assistant", "hello", "gemini-2.5-flash")],
            current_model="gemini-2.5-flash",
            updated_at=now(),
        )

        response = await test_client.get("/api/chat")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["currentModel"] == "gemini-2.5-flash"
        assert [m["role"] for m in data["messages"]] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_send_message_decodes_attachments(self, test_client, chat_service, png_bytes):
        chat_service.send_message.return_value = (
            turn("user", "what is this?"),
            turn("assistant", "a graph", "gemini-2.0-flash"),
        )

        response = await test_client.post("/api/chat/message", json={
            "message": "what is this?",
            "model": "gemini-2.5-flash",
            "attachments": [{
                "fileName": "board.png",
                "fileType": "image/png",
                "fileData": base64.b64encode(png_bytes).decode(),
            }],
            "contextNotes": [{"title": "Graphs", "content": "nodes and edges"}],
        })

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["assistantMessage"]["model"] == "gemini-2.0-flash"

        kwargs = chat_service.send_message.await_args.kwargs
        assert kwargs["attachments"][0].data == png_bytes
        assert kwargs["context_notes"][0].title == "Graphs"

    @pytest.mark.asyncio
    async def test_blank_message_is_400(self, test_client, chat_service):
        response = await test_client.post("/api/chat/message", json={"message": "   "})
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"
        chat_service.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_clear(self, test_client, chat_service):
        response = await test_client.delete("/api/chat")
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Chat history cleared"}
        chat_service.clear_history.assert_awaited_once()


# ══════════════════════════════════════════════════════════════════════════
# Workspace resources
# ══════════════════════════════════════════════════════════════════════════

class TestWorkspace:

    @pytest.fixture(autouse=True)
    def db(self, app, mock_db_session):
        app.dependency_overrides[get_db_session] = lambda: mock_db_session
        return mock_db_session

    @pytest.mark.asyncio
    async def test_create_note(self, test_client):
        saved = SimpleNamespace(
            id=uuid.uuid4(),
            title="Signals",
            original_files=["week3.pdf"],
            generated_notes="# Signals",
            model_used="gemini-2.5-pro",
            created_at=now(),
            updated_at=now(),
        )
        with patch(
            "pen2pdf.routes.library.library_service.create_note",
            new=AsyncMock(return_value=saved),
        ) as create:
            response = await test_client.post("/api/notes", json={
                "title": " Signals ",
                "originalFiles": ["week3.pdf"],
                "generatedNotes": "# Signals",
                "modelUsed": "gemini-2.5-pro",
            })

        assert response.status_code == 201
        assert response.json()["data"]["generatedNotes"] == "# Signals"
        assert create.await_args.args[1].title == "Signals"

    @pytest.mark.asyncio
    async def test_unknown_note_is_404(self, test_client):
        with patch(
            "pen2pdf.routes.library.library_service.get_note",
            new=AsyncMock(side_effect=NotFoundError(resource="note", resource_id="x")),
        ):
            response = await test_client.get(f"/api/notes/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_create_todo_card(self, test_client):
        card = SimpleNamespace(
            id=uuid.uuid4(),
            title="Exam prep",
            sub_todos=[],
            created_at=now(),
            updated_at=now(),
        )
        with patch(
            "pen2pdf.routes.todos.todo_service.create_card",
            new=AsyncMock(return_value=card),
        ):
            response = await test_client.post("/api/todos", json={"title": "Exam prep"})

        assert response.status_code == 201
        assert response.json()["data"]["title"] == "Exam prep"
        assert response.json()["data"]["subTodos"] == []

    @pytest.mark.asyncio
    async def test_whiteboard_save(self, test_client):
        state = SimpleNamespace(
            id=uuid.uuid4(),
            elements=[{"type": "rect", "x": 1}],
            updated_at=now(),
        )
        with patch(
            "pen2pdf.routes.whiteboard.whiteboard_service.save",
            new=AsyncMock(return_value=state),
        ) as save:
            response = await test_client.put("/api/whiteboard", json={"elements": [{"type": "rect", "x": 1}]})

        assert response.status_code == 200
        assert response.json()["data"]["elements"] == [{"type": "rect", "x": 1}]
        save.assert_awaited_once()


# ══════════════════════════════════════════════════════════════════════════
# Health
# ══════════════════════════════════════════════════════════════════════════

class TestHealth:

    @pytest.mark.asyncio
    async def test_healthy(self, app, test_client, tiny_catalog, fake_adapter):
        app.state.generation_service = GenerationService(
            tiny_catalog, {"gemini": fake_adapter("gemini", {})}, CONFIG
        )
        with patch("pen2pdf.routes.health.check_database", new=AsyncMock(return_value=True)):
            response = await test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["backends"] == {"gemini": "configured"}

    @pytest.mark.asyncio
    async def test_unconfigured_backend_is_degraded(self, app, test_client, tiny_catalog, fake_adapter):
        app.state.generation_service = GenerationService(
            tiny_catalog,
            {
                "gemini": fake_adapter("gemini", {}),
                "longcat": fake_adapter("longcat", {}, configured=False),
            },
            CONFIG,
        )
        with patch("pen2pdf.routes.health.check_database", new=AsyncMock(return_value=True)):
            response = await test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    @pytest.mark.asyncio
    async def test_database_down_is_503(self, test_client):
        with patch("pen2pdf.routes.health.check_database", new=AsyncMock(return_value=False)):
            response = await test_client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"
        assert response.json()["database"] == "disconnected"
