from __future__ import annotations

from market_guard.api.routes.admin import router as admin_router
from market_guard.api.routes.health import router as health_router
from market_guard.api.routes.rate_limit import router as rate_limit_router

__all__ = ["admin_router", "health_router", "rate_limit_router"]
