"""
Pen2PDF Backend: FastAPI Application Factory
==============================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn pen2pdf.main:app).
When:  Once at server startup; the returned app handles all subsequent requests.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌────────────┐ ┌──────────┐ ┌─────────┐ ┌────────────┐  │
    │  │ Rate Limit │→│  Req ID  │→│ Logging │→│ GZip, CORS │  │
    │  └────────────┘ └──────────┘ └─────────┘ └────────────┘  │
    │                                                          │
    │  Routes:                                                 │
    │  /textExtract  /notesGenerate  /api/chat                 │
    │  /api/github-models  /api/notes  /api/todos              │
    │  /api/whiteboard  /health                                │
    │                                                          │
    │  Exception Handlers:                                     │
    │  Validation→400 │ NotFound→404 │ RateLimited→429         │
    │  Configuration→500 │ Provider/Empty→502 │ DB→500         │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Report missing credentials (the server still starts; AI routes answer
       with configuration_error until an operator sets them)
    3. Build the model catalog and the provider adapters, optionally refresh
       the Gemini list from the live API
    4. Store the GenerationService on app.state

    Shutdown:
    1. Dispose database engine (close all connections)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Tuple

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from pen2pdf import __version__
from pen2pdf.config import Settings, settings
from pen2pdf.database import dispose_engine
from pen2pdf.exceptions import (
    ConfigurationError,
    DatabaseError,
    EmptyResponseError,
    NotFoundError,
    Pen2PDFError,
    ProviderError,
    RateLimitedError,
    ValidationError,
)
from pen2pdf.middleware.logging import RequestLoggingMiddleware
from pen2pdf.middleware.rate_limit import RateLimitMiddleware
from pen2pdf.middleware.request_id import RequestIDMiddleware, request_id_var
from pen2pdf.routes import chat, extract, github_models, health, library, todos, whiteboard
from pen2pdf.services.chat_completions_service import ChatCompletionsAdapter
from pen2pdf.services.gemini_service import GeminiAdapter
from pen2pdf.services.generation_service import GenerationService
from pen2pdf.services.model_catalog import (
    ModelCatalog,
    build_default_catalog,
    discover_gemini_models,
)

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s

    Every fallback attempt is logged by pen2pdf.services.fallback at INFO
    (success) or WARNING (failure), so LOG_LEVEL=INFO shows the full model
    resolution of every AI request.
    """
    log_format = (
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    )

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),  # Docker captures stdout
        ],
        force=True,
    )

    # Per-request noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# AI Layer Wiring
# ══════════════════════════════════════════════════════════════════════════

def build_ai_layer(config: Settings = settings) -> Tuple[ModelCatalog, GenerationService]:
    """
    Catalog plus one adapter per backend.

    GitHub Models gets the conversation as structured messages; LongCat
    gets it flattened into one system message.
    """
    catalog = build_default_catalog(config)
    adapters = {
        "gemini": GeminiAdapter(api_key=config.gemini_api_key),
        "github": ChatCompletionsAdapter(
            backend="github",
            base_url=config.github_models_base_url,
            api_key=config.github_models_pat,
            credential_name="GITHUB_MODELS_PAT",
        ),
        "longcat": ChatCompletionsAdapter(
            backend="longcat",
            base_url=config.longcat_base_url,
            api_key=config.longcat_api_key,
            credential_name="LONGCAT_API_KEY",
            flatten_history=True,
        ),
    }
    return catalog, GenerationService(catalog, adapters, config)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("Pen2PDF Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Don't exit: health and the workspace routes still work, and each
        # AI route reports exactly which credential is missing
        logger.warning("Configuration incomplete: %s", str(e))

    catalog, generation = build_ai_layer(settings)

    if settings.model_discovery_enabled and generation.adapters["gemini"].is_configured():
        await catalog.refresh("gemini", discover_gemini_models)

    app.state.model_catalog = catalog
    app.state.generation_service = generation
    for task in catalog.task_names:
        logger.info(
            "Task %s candidates: %s",
            task, ", ".join(c.id for c in catalog.candidates_for(task)) or "(user choice only)",
        )

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield  # Application runs here

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Pen2PDF Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(error: str, message: str, details=None) -> dict:
    return {
        "error": error,
        "message": message,
        "details": details,
        "request_id": request_id_var.get(""),
    }


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error responses.

    Handler hierarchy:
        ValidationError, RequestValidationError → 400 validation_error
        NotFoundError                           → 404 not_found
        RateLimitedError                        → 429 rate_limited
        ConfigurationError                      → 500 configuration_error
        ProviderError                           → 502 provider_error
        EmptyResponseError                      → 502 empty_response
        DatabaseError                           → 500 server_error
        Pen2PDFError (base), Exception          → 500

    Responses never carry stack traces, SQL or raw provider messages; those
    are logged server-side with the request id.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", exc.message, exc.context),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(part) for part in error.get("loc", ())[1:]) or None,
                "message": error.get("msg", ""),
                "type": error.get("type", ""),
            }
            for error in exc.errors()
        ]
        first = errors[0] if errors else {"field": None, "message": "Invalid request"}
        message = (
            f"Invalid field '{first['field']}': {first['message']}"
            if first["field"] else first["message"]
        )
        logger.warning("[%s] Request validation failed: %s", request_id_var.get(""), message)
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", message, {"errors": errors}),
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=404,
            content=_error_body("not_found", exc.message),
        )

    @app.exception_handler(RateLimitedError)
    async def handle_rate_limited(request: Request, exc: RateLimitedError):
        """The model's quota is spent; the UI suggests switching models."""
        logger.warning("[%s] Model rate limited: %s", request_id_var.get(""), exc.model)
        return JSONResponse(
            status_code=429,
            content=_error_body(
                "rate_limited",
                exc.message,
                {"model": exc.model, "attempted_models": exc.attempted_models},
            ),
        )

    @app.exception_handler(ConfigurationError)
    async def handle_configuration_error(request: Request, exc: ConfigurationError):
        logger.error("[%s] Configuration error: %s", request_id_var.get(""), exc.message)
        details = {"missing": exc.missing} if exc.missing else None
        return JSONResponse(
            status_code=500,
            content=_error_body("configuration_error", exc.message, details),
        )

    @app.exception_handler(ProviderError)
    async def handle_provider_error(request: Request, exc: ProviderError):
        logger.error(
            "[%s] Provider error: %s | Context: %s",
            request_id_var.get(""), exc.message, exc.context,
        )
        return JSONResponse(
            status_code=502,
            content=_error_body(
                "provider_error",
                exc.message,
                {"attempted_models": exc.attempted_models},
            ),
        )

    @app.exception_handler(EmptyResponseError)
    async def handle_empty_response(request: Request, exc: EmptyResponseError):
        logger.error(
            "[%s] Empty response from models: %s",
            request_id_var.get(""), exc.attempted_models,
        )
        return JSONResponse(
            status_code=502,
            content=_error_body(
                "empty_response",
                exc.message,
                {"attempted_models": exc.attempted_models},
            ),
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        """Generic message to the user, details logged server-side."""
        logger.error(
            "[%s] Database error: %s | Context: %s",
            request_id_var.get(""), exc.message, exc.context,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "server_error",
                "An internal error occurred. Please try again later.",
            ),
        )

    @app.exception_handler(Pen2PDFError)
    async def handle_app_error(request: Request, exc: Pen2PDFError):
        logger.error("[%s] Application error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", exc.message),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Catch-all: stack trace logged, never returned."""
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Tests call this for a fresh app (fresh rate-limit counters) and override
    the dependencies in pen2pdf.dependencies; lifespan does not run under
    httpx's ASGITransport.
    """
    app = FastAPI(
        title="Pen2PDF API",
        description=(
            "Text extraction, study notes generation and chat over several AI "
            "providers with per-task model fallback, plus the notes library, "
            "todo and whiteboard resources."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Starlette runs middleware in REVERSE order of addition, so the
    # execution order is: RateLimit → RequestID → Logging → GZip → CORS

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "Retry-After",
        ],
    )

    # Generated notes and chat histories compress well
    app.add_middleware(GZipMiddleware, minimum_size=500)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(extract.router)
    app.include_router(chat.router)
    app.include_router(github_models.router)
    app.include_router(library.router)
    app.include_router(todos.router)
    app.include_router(whiteboard.router)
    app.include_router(health.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
app = create_app()
