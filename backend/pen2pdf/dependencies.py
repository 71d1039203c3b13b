"""
Pen2PDF Backend: FastAPI Dependencies
=======================================

What:  Providers for the objects route handlers need beyond a DB session.
How:   The lifespan in main.py builds the ModelCatalog and GenerationService
       once and stores them on app.state; these functions read them back.
       Tests replace them with app.dependency_overrides.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from pen2pdf.database import get_db_session
from pen2pdf.exceptions import ConfigurationError
from pen2pdf.services.chat_service import ChatService
from pen2pdf.services.generation_service import GenerationService
from pen2pdf.services.model_catalog import ModelCatalog
from pen2pdf.services.session_store import SqlChatSessionStore


def get_generation_service(request: Request) -> GenerationService:
    service = getattr(request.app.state, "generation_service", None)
    if service is None:
        raise ConfigurationError(message="The AI generation layer has not been initialized")
    return service


def get_model_catalog(request: Request) -> ModelCatalog:
    catalog = getattr(request.app.state, "model_catalog", None)
    if catalog is None:
        raise ConfigurationError(message="The model catalog has not been initialized")
    return catalog


async def get_chat_service(
    db: AsyncSession = Depends(get_db_session),
    generation: GenerationService = Depends(get_generation_service),
) -> ChatService:
    return ChatService(store=SqlChatSessionStore(db), generation=generation)
