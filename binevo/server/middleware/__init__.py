"""Request middleware for the Binevo server."""

from .logfire_middleware import LogfireMiddleware

__all__ = ["LogfireMiddleware"]
