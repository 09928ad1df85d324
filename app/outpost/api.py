from fastapi import APIRouter

from app.outpost.core.config import settings
from app.outpost.routers.accounts import router as accounts_router
from app.outpost.routers.auth import router as auth_router
from app.outpost.routers.catalog import router as catalog_router
from app.outpost.routers.dashboard import router as dashboard_router
from app.outpost.routers.health import router as health_router
from app.outpost.routers.locations import router as locations_router
from app.outpost.routers.metrics import router as metrics_router
from app.outpost.routers.transactions import router as transactions_router
from app.outpost.schemas.errors import (
    ApiErrorResponse,
    ApiValidationErrorResponse,
    ConflictErrorResponse,
    DeniedErrorResponse,
    UnavailableErrorResponse,
)

ERROR_RESPONSES = {
    401: {"description": "Missing, malformed or expired bearer token", "model": ApiErrorResponse},
    403: {"description": "Operation denied, or the row is missing or outside the caller's scope", "model": DeniedErrorResponse},
    422: {"description": "Invalid input", "model": ApiValidationErrorResponse},
    503: {"description": "Repository temporarily unavailable", "model": UnavailableErrorResponse},
}

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(auth_router, tags=["auth"], responses=ERROR_RESPONSES)
api_router.include_router(locations_router, tags=["locations"], responses=ERROR_RESPONSES)
api_router.include_router(catalog_router, tags=["catalog"], responses=ERROR_RESPONSES)
api_router.include_router(
    transactions_router,
    tags=["transactions"],
    responses={**ERROR_RESPONSES, 409: {"description": "Invalid status transition", "model": ConflictErrorResponse}},
)
api_router.include_router(dashboard_router, tags=["dashboard"], responses=ERROR_RESPONSES)
api_router.include_router(accounts_router, tags=["accounts"], responses=ERROR_RESPONSES)
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, tags=["ops"])
