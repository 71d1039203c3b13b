"""
Pen2PDF Backend: API Routes Package
=====================================

What:  HTTP route handlers that accept requests and return responses.

Route Inventory:
    - extract.py:        POST /textExtract, POST /notesGenerate
    - chat.py:           GET/DELETE /api/chat, POST /api/chat/message
    - github_models.py:  GET /api/github-models/models, POST /api/github-models/chat
    - library.py:        /api/notes CRUD
    - todos.py:          /api/todos cards and sub-todos
    - whiteboard.py:     GET/PUT/DELETE /api/whiteboard
    - health.py:         GET /health

Routes stay thin: read the request, call a service, shape the response.
Every model call goes through GenerationService.
"""
