from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.outpost.core.error_catalog import ErrorCatalog
from app.outpost.core.errors import error_response
from app.outpost.db.session import get_db

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    trace_id = getattr(request.state, "trace_id", "")
    return {"status": "ok", "trace_id": trace_id}


@router.get("/ready")
def ready(request: Request, db=Depends(get_db)):
    trace_id = getattr(request.state, "trace_id", "")
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        return error_response(
            code=ErrorCatalog.UNAVAILABLE.code,
            message=ErrorCatalog.UNAVAILABLE.message,
            details={"component": "repository", "retryable": True, "error": exc.__class__.__name__},
            trace_id=trace_id,
            status_code=ErrorCatalog.UNAVAILABLE.status_code,
        )
    cache = getattr(request.app.state, "cache", None)
    return {
        "status": "ready",
        "cache": "enabled" if cache is not None and cache.available else "disabled",
        "trace_id": trace_id,
    }
