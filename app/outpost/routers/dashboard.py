from datetime import date

from fastapi import APIRouter, Depends, Query, Request

from app.outpost.core.context import Principal
from app.outpost.core.deps import get_gate, get_principal, get_requested_scope
from app.outpost.schemas.dashboard import DashboardPreset, DashboardResponse
from app.outpost.services.dashboard import RangePreset, RangeQuery, compute_dashboard
from app.outpost.services.gate import AuthorizationGate

router = APIRouter()


@router.get("/outpost/dashboard", response_model=DashboardResponse)
def get_dashboard(
    request: Request,
    preset: DashboardPreset | None = Query(None),
    start: date | None = Query(None),
    end: date | None = Query(None),
    requested_scope=Depends(get_requested_scope),
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    range_query = RangeQuery(preset=RangePreset(preset) if preset else None, start=start, end=end)
    metrics = compute_dashboard(gate, principal, range_query, requested_scope=requested_scope)
    return DashboardResponse(**metrics, trace_id=getattr(request.state, "trace_id", ""))
