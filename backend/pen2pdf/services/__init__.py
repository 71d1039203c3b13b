"""
Pen2PDF Backend: Services Package
===================================

Business logic, independent of HTTP.

AI call resolution (bottom-up):
    file_policy.py          which MIME types a model may receive
    model_catalog.py        candidate models per task, discovery refresh
    request_builder.py      one provider-agnostic request per candidate
    llm_base.py             ProviderAdapter interface and request types
    gemini_service.py       Gemini adapter (google-generativeai)
    chat_completions_service.py  GitHub Models / LongCat adapter (httpx)
    extraction.py           text extraction from heterogeneous responses
    fallback.py             failure classification and the fallback loop
    generation_service.py   generate_response(), the single entry point

Workspace:
    attachment_service.py, session_store.py, chat_service.py,
    library_service.py, todo_service.py, whiteboard_service.py
"""
