"""API routers."""

from app.routers.auth import router as auth_router
from app.routers.db import router as db_router

__all__ = ["auth_router", "db_router"]
