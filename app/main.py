from fastapi import FastAPI

from app.outpost.api import api_router
from app.outpost.core.config import settings
from app.outpost.core.errors import setup_exception_handlers
from app.outpost.core.logging import configure_logging
from app.outpost.db import session as db_session
from app.outpost.middleware.observability import ObservabilityMiddleware
from app.outpost.middleware.trace import TraceIdMiddleware
from app.outpost.services.audit import DatabaseAuditSink, LoggingAuditSink
from app.outpost.services.cache import CacheLayer, build_cache_backend


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME)
    app.state.cache = CacheLayer(build_cache_backend())
    app.state.audit_sinks = [LoggingAuditSink(), DatabaseAuditSink(db_session.SessionLocal)]
    app.add_middleware(TraceIdMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    setup_exception_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()
