"""HTTP server package for the todo API."""

from .api import create_app

__all__ = ["create_app"]
