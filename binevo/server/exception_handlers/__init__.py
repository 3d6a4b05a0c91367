"""
Exception handlers for the Binevo server.

``setup_exception_handlers`` registers the domain error handler and the
catch-all handler with the FastAPI application.
"""

from .global_handler import setup_exception_handlers

__all__ = ["setup_exception_handlers"]
