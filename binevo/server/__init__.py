"""HTTP server for Binevo (FastAPI application, routers and dependencies)."""
