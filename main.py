"""ASGI entrypoint: `uvicorn main:app`."""

from zkop.api import create_app

app = create_app()
