"""HTTP layer (starlette) exposing the AIS flow to browsers."""

from .main import build_service, create_app, main

__all__ = ["build_service", "create_app", "main"]
