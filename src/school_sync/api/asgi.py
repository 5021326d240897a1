"""ASGI entrypoint for the school sync API."""

from school_sync.api.app import create_app

app = create_app()
