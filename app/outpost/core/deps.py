from fastapi import BackgroundTasks, Depends, Query, Request

from app.outpost.core.config import settings
from app.outpost.core.context import Principal, get_trace_id
from app.outpost.core.error_catalog import InvalidInput
from app.outpost.core.identity import resolve_principal
from app.outpost.core.scope import ScopeFilter
from app.outpost.core.security import oauth2_scheme
from app.outpost.db.session import get_db
from app.outpost.repos.base import Pagination
from app.outpost.services.audit import AuditService, PendingAudit
from app.outpost.services.cache import CacheLayer
from app.outpost.services.gate import AuthorizationGate


def get_principal(request: Request, token: str | None = Depends(oauth2_scheme), db=Depends(get_db)) -> Principal:
    principal = resolve_principal(db, token)
    request.state.principal_id = principal.id
    request.state.role = principal.role.value
    return principal


def get_cache(request: Request) -> CacheLayer:
    cache = getattr(request.app.state, "cache", None)
    return cache if cache is not None else CacheLayer(None)


def pending_audit(request: Request) -> PendingAudit:
    pending = getattr(request.state, "pending_audit", None)
    if pending is None:
        pending = PendingAudit()
        request.state.pending_audit = pending
    return pending


def get_audit(request: Request, background_tasks: BackgroundTasks) -> AuditService:
    # Error responses are built by the exception handlers, which flush the same queue.
    sinks = getattr(request.app.state, "audit_sinks", [])
    pending = pending_audit(request)
    background_tasks.add_task(pending.flush)
    return AuditService(sinks, schedule=pending.add)


def get_gate(
    request: Request,
    db=Depends(get_db),
    cache: CacheLayer = Depends(get_cache),
    audit: AuditService = Depends(get_audit),
) -> AuthorizationGate:
    return AuthorizationGate(db, cache=cache, audit=audit, trace_id=get_trace_id(request))


def get_pagination(
    limit: int = Query(settings.PAGINATION_DEFAULT_LIMIT, ge=1, le=settings.PAGINATION_MAX_LIMIT),
    offset: int = Query(0, ge=0),
) -> Pagination:
    return Pagination(limit=limit, offset=offset)


def get_requested_scope(
    location_id: str | None = Query(None),
    region_id: str | None = Query(None),
) -> ScopeFilter | None:
    if location_id and region_id:
        raise InvalidInput("filter by location_id or region_id, not both", field="scope")
    if location_id:
        return ScopeFilter.for_location(location_id)
    if region_id:
        return ScopeFilter.for_region(region_id)
    return None


__all__ = [
    "get_principal",
    "get_cache",
    "pending_audit",
    "get_audit",
    "get_gate",
    "get_pagination",
    "get_requested_scope",
]
