"""
App assembly entry point.

Re-exports the FastAPI `app` from `backoffice.api.main` for ASGI servers
(`uvicorn app:app`).
"""

from backoffice.api.main import app  # noqa: F401
