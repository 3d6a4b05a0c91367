"""
Monitoring and Tracing Configuration Module.

This module wires Pydantic Logfire into the Binevo server:
- FastAPI endpoint tracing
- SQLAlchemy query tracing
- HTTPX tracing for outbound payment, email and SMS calls
- pydantic-ai tracing for copy generation

Everything is opt-in through ``LOGFIRE_ENABLED``.
"""

import logging
import os
from typing import Any, Optional

import logfire
from fastapi import FastAPI

logger = logging.getLogger(__name__)

LOGFIRE_ENABLED = os.getenv("LOGFIRE_ENABLED", "false").lower() in ("true", "1", "yes")
LOGFIRE_TOKEN = os.getenv("LOGFIRE_TOKEN", "")
LOGFIRE_ENVIRONMENT = os.getenv("LOGFIRE_ENVIRONMENT", "development")
LOGFIRE_SERVICE_NAME = os.getenv("LOGFIRE_SERVICE_NAME", "binevo-server")
LOGFIRE_SERVICE_VERSION = os.getenv("LOGFIRE_SERVICE_VERSION", "0.1.0")

LOGFIRE_TRACE_SQLALCHEMY = os.getenv("LOGFIRE_TRACE_SQLALCHEMY", "true").lower() in ("true", "1", "yes")
LOGFIRE_TRACE_HTTPX = os.getenv("LOGFIRE_TRACE_HTTPX", "true").lower() in ("true", "1", "yes")
LOGFIRE_TRACE_FASTAPI = os.getenv("LOGFIRE_TRACE_FASTAPI", "true").lower() in ("true", "1", "yes")
LOGFIRE_TRACE_PYDANTIC_AI = os.getenv("LOGFIRE_TRACE_PYDANTIC_AI", "true").lower() in ("true", "1", "yes")


def is_enabled() -> bool:
    return LOGFIRE_ENABLED and bool(LOGFIRE_TOKEN)


def initialize_logfire(app: Optional[FastAPI] = None) -> None:
    """
    Initialize Pydantic Logfire for monitoring and tracing.

    Args:
        app: FastAPI application instance for endpoint instrumentation (optional).
    """
    if not LOGFIRE_ENABLED:
        logger.info("Logfire monitoring is disabled. Set LOGFIRE_ENABLED=true to enable.")
        return

    if not LOGFIRE_TOKEN:
        logger.warning("Logfire is enabled but LOGFIRE_TOKEN is not set. Monitoring will not work.")
        return

    logfire.configure(
        token=LOGFIRE_TOKEN,
        service_name=LOGFIRE_SERVICE_NAME,
        service_version=LOGFIRE_SERVICE_VERSION,
        environment=LOGFIRE_ENVIRONMENT,
    )

    instrumentations = []
    if LOGFIRE_TRACE_SQLALCHEMY:
        instrumentations.append(("SQLAlchemy", logfire.instrument_sqlalchemy, {}))
    if LOGFIRE_TRACE_HTTPX:
        instrumentations.append(("HTTPX", logfire.instrument_httpx, {}))
    if LOGFIRE_TRACE_PYDANTIC_AI:
        instrumentations.append(("Pydantic AI", logfire.instrument_pydantic_ai, {}))
    if LOGFIRE_TRACE_FASTAPI and app is not None:
        instrumentations.append(("FastAPI", logfire.instrument_fastapi, {"app": app}))

    for name, instrument, kwargs in instrumentations:
        try:
            instrument(**kwargs)
            logger.info(f"Logfire: {name} instrumentation enabled")
        except Exception as e:
            logger.warning(f"Failed to instrument {name}: {e}")

    logger.info(f"Logfire monitoring initialized: environment={LOGFIRE_ENVIRONMENT}, service={LOGFIRE_SERVICE_NAME}")


def log_api_request(method: str, path: str, status_code: int, duration_ms: float, **kwargs: Any) -> None:
    """Record a finished HTTP request in the log and, when enabled, in Logfire."""
    logger.debug(f"{method} {path} -> {status_code} ({duration_ms:.2f}ms)")
    if is_enabled():
        logfire.info(
            "api request {method} {path}",
            method=method,
            path=path,
            status_code=status_code,
            duration_ms=duration_ms,
            **kwargs,
        )


def log_business_event(event: str, **attributes: Any) -> None:
    """Record a domain event (donation completed, subscription expired, ...)."""
    logger.info(f"{event}: {attributes}")
    if is_enabled():
        logfire.info(event, **attributes)
