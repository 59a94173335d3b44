from __future__ import annotations

from ratewindow.api.routes.health import router as health_router
from ratewindow.api.routes.limits import router as limits_router
from ratewindow.api.routes.root import router as root_router
from ratewindow.api.routes.user import router as user_router

__all__ = ["health_router", "limits_router", "root_router", "user_router"]
