"""API routes package."""

from server.routes.auth_routes import router as auth_router
from server.routes.file_routes import router as file_router
from server.routes.me_routes import router as me_router

__all__ = ["auth_router", "file_router", "me_router"]
