"""Routers module - FastAPI route handlers"""

from . import config, documents

__all__ = ["config", "documents"]
