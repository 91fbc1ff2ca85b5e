from __future__ import annotations

from compiler_api.api.routes.auth import router as auth_router
from compiler_api.api.routes.compiler import router as compiler_router
from compiler_api.api.routes.health import router as health_router
from compiler_api.api.routes.user import router as user_router

__all__ = ["auth_router", "compiler_router", "health_router", "user_router"]
