"""ASGI entry point (uvicorn chatgate.api.app:app)."""

from .factory import create_app

app = create_app()
