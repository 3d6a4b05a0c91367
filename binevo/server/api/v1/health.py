"""
Health Check Endpoints.

Basic status endpoints used by the load balancer and deploy checks.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from binevo.core.database import get_session
from binevo.core.logging_config import get_logger
from binevo.server.core import constant

logger = get_logger(__name__)

router = APIRouter()


@router.get(
    "/health",
    summary="Health Check",
    description="Check the operational status of the API server and its database.",
    response_description="Status object.",
)
async def health_check(session: AsyncSession = Depends(get_session)):
    """
    Health check endpoint.

    Reports ``degraded`` instead of failing when the database cannot be
    reached, so the process itself is still seen as alive.
    """
    try:
        await session.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        logger.error(f"Health check database query failed: {e}")
        database = "unavailable"
    return {"status": "ok" if database == "ok" else "degraded", "database": database}


@router.get(
    "/version",
    summary="Get Version",
    description="Retrieve version information for the API server.",
    response_description="Version object.",
)
async def version():
    return {"version": constant.VERSION, "schema_version": "v1"}
