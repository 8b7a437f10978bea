"""API router initialization."""

# Hey future me - this collects the sub-routers into api_router, which main.py mounts under /api.
# Each router file defines its own prefix, so endpoints become /api/rules, /api/bulk/jobs, etc.

from fastapi import APIRouter

from catalogaudit.api.routers import artists, bulk, health, rules, violations

api_router = APIRouter()

api_router.include_router(rules.router)
api_router.include_router(artists.router)
api_router.include_router(violations.router)
api_router.include_router(bulk.router)
api_router.include_router(health.router)

__all__ = [
    "api_router",
    "artists",
    "bulk",
    "health",
    "rules",
    "violations",
]
