"""HTTP scoring service."""

from .app import app, create_app, load_configured_model

__all__ = ["app", "create_app", "load_configured_model"]
