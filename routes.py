# routes.py
from fastapi import FastAPI
from controller.health_controller import health_router
from controller.mcp_controller import fallback_router, mcp_router


def register_routes(app: FastAPI) -> None:
    """Register & Access control controllers here."""
    app.include_router(health_router)
    app.include_router(mcp_router)
    app.include_router(fallback_router)
