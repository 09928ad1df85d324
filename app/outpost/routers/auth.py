from fastapi import APIRouter, Depends, Request

from app.outpost.core.context import Principal
from app.outpost.core.deps import get_gate, get_principal
from app.outpost.core.error_catalog import Denied
from app.outpost.core.scope import Operation
from app.outpost.db.session import get_db
from app.outpost.repos.users import UserRepository
from app.outpost.schemas.auth import LoginRequest, MeResponse, PrincipalOut, TokenResponse
from app.outpost.services.accounts import authenticate
from app.outpost.services.gate import AuthorizationGate

router = APIRouter()


@router.post("/outpost/auth/login", response_model=TokenResponse)
def login(request: Request, payload: LoginRequest, db=Depends(get_db)):
    identifier = payload.username_or_email or payload.email
    _, token = authenticate(db, identifier, payload.password)
    return TokenResponse(access_token=token, trace_id=getattr(request.state, "trace_id", ""))


@router.get("/outpost/me", response_model=MeResponse)
def me(
    request: Request,
    principal: Principal = Depends(get_principal),
    gate: AuthorizationGate = Depends(get_gate),
):
    def load(query):
        user = UserRepository(gate.db).get_by_id(principal.id)
        if user is None:
            raise Denied("principal no longer exists")
        return {"username": user.username, "email": user.email, "full_name": user.full_name}

    profile = gate.read(principal, Operation.VIEW_PROFILE, None, load)
    return MeResponse(
        principal=PrincipalOut(
            id=principal.id,
            role=principal.role.value,
            home_location_id=principal.home_location_id,
            home_region_id=principal.home_region_id,
            active=principal.active,
        ),
        trace_id=getattr(request.state, "trace_id", ""),
        **profile,
    )
