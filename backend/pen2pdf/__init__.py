"""
Pen2PDF Backend: Application Package
======================================

Study workspace API: text extraction and notes generation from uploads,
the Bella chat assistant, GitHub Models chat, and the notes library, todo
and whiteboard resources.

Layers:
    routes/      HTTP concerns only (status codes, multipart, envelopes)
    services/    business rules; every AI call goes through
                 GenerationService and its model fallback
    models/      SQLAlchemy tables        schemas/  Pydantic API contracts
    database.py  async engine and per-request sessions
"""

__version__ = "0.3.0"
