"""HTTP surface of the server."""

from reelvault.api.app import create_app

__all__ = ["create_app"]
