"""
Pen2PDF Backend: Middleware Package
=====================================

Cross-cutting concerns applied to every request.

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    1. Rate Limit first: abusive clients are turned away before anything runs
    2. Request ID: correlation id for every later log line
    3. Logging: needs the request id and sees the final status

Starlette runs middleware in reverse order of add_middleware(); see
main.create_app() for the registration order.
"""
