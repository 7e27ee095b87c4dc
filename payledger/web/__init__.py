"""FastAPI application exposing the payment webhook."""

from .api import create_app, router

__all__ = ["create_app", "router"]
