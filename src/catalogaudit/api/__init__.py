"""API module for catalog-audit.

The entry point is `api_router` from routers/, mounted under /api in main.py.

- routers/: endpoints (rules, artists, violations, bulk, health)
- schemas/: pydantic request/response models
- dependencies.py: services and workers pulled from app.state
- exception_handlers.py: domain exception to status code mapping
"""

from catalogaudit.api.exception_handlers import register_exception_handlers
from catalogaudit.api.routers import api_router

__all__ = ["api_router", "register_exception_handlers"]
