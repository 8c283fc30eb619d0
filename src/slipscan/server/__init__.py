"""ASGI application factory and dependencies for the Slipscan server."""

from slipscan.server.app import app, create_app

__all__ = ["app", "create_app"]
