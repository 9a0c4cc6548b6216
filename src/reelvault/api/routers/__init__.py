"""API routers."""

from reelvault.api.routers import system

__all__ = ["system"]
