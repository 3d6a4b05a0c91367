"""
Main Application Entry Point.

This module initializes the FastAPI application, configures middleware
(CORS, request timing), registers the exception handlers and includes all
API routers. It serves as the root of the web server.
"""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from binevo.core.logging_config import get_logger, setup_logging
from binevo.core.monitoring import initialize_logfire

from .api.v1 import (
    admin,
    ai,
    analytics,
    audit,
    auth,
    automations,
    billing,
    campaigns,
    connect,
    cron,
    donate,
    donations,
    donors,
    health,
    invoices,
    notifications,
    pledges,
    privacy,
    prospects,
    public,
    settings as settings_routes,
    tags,
    tax_forms,
    unsubscribe,
    uploads,
    webhooks,
)
from .core import constant
from .core.config import settings
from .exception_handlers import setup_exception_handlers
from .middleware import LogfireMiddleware

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.

    The schema is owned by Alembic migrations, so startup only reports the
    configuration the process runs with.
    """
    logger.info(f"Starting up {constant.PROJECT_NAME} Server {constant.VERSION}...")
    yield
    logger.info(f"Shutting down {constant.PROJECT_NAME} Server...")


app = FastAPI(
    title=constant.PROJECT_NAME,
    description="""
    Binevo API

    Donor CRM, email/SMS campaigns, online donations through Stripe Connect,
    subscription billing with e-Factura, NGO mini-sites and the super-admin
    back office.
    """,
    version=constant.VERSION,
    openapi_url=f"{constant.API_V1_STR}/openapi.json",
    docs_url=f"{constant.API_V1_STR}/docs",
    redoc_url=f"{constant.API_V1_STR}/redoc",
    lifespan=lifespan,
)

initialize_logfire(app)
setup_exception_handlers(app)

# Set all CORS enabled origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors.origins,
    allow_credentials=settings.cors.allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(LogfireMiddleware)

Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.upload_dir), name="uploads")

V1 = constant.API_V1_STR

app.include_router(health.router, tags=["health"])
app.include_router(auth.router, prefix=f"{V1}/auth")
app.include_router(donors.router, prefix=f"{V1}/donors")
app.include_router(tags.router, prefix=f"{V1}/tags")
app.include_router(donations.router, prefix=f"{V1}/donations")
app.include_router(pledges.router, prefix=f"{V1}/pledges")
app.include_router(tax_forms.router, prefix=f"{V1}/formular-230")
app.include_router(campaigns.router, prefix=f"{V1}/campaigns")
app.include_router(automations.router, prefix=f"{V1}/automations")
app.include_router(notifications.router, prefix=f"{V1}/notifications")
app.include_router(analytics.router, prefix=f"{V1}/analytics")
app.include_router(audit.router, prefix=f"{V1}/audit-logs")
app.include_router(settings_routes.router, prefix=f"{V1}/settings")
app.include_router(uploads.router, prefix=f"{V1}/uploads")
app.include_router(ai.router, prefix=f"{V1}/ai")
app.include_router(billing.router, prefix=f"{V1}/billing")
app.include_router(connect.router, prefix=f"{V1}/stripe/connect")
app.include_router(privacy.router, prefix=f"{V1}/gdpr")
app.include_router(prospects.router, prefix=f"{V1}/prospects")
app.include_router(public.router, prefix=f"{V1}/public")
app.include_router(donate.router, prefix=f"{V1}/donate")
app.include_router(unsubscribe.router, prefix=f"{V1}/unsubscribe")
app.include_router(invoices.router, prefix=f"{V1}/invoices")
app.include_router(webhooks.router, prefix=f"{V1}/webhooks")
app.include_router(cron.router, prefix=f"{V1}/cron")
app.include_router(admin.router, prefix=f"{V1}/admin")
