from __future__ import annotations

from app.outpost.core.context import Principal
from app.outpost.core.error_catalog import AppError, Denied, ErrorCatalog, InvalidInput
from app.outpost.core.identity import principal_from_user
from app.outpost.core.scope import Operation, ScopeFilter
from app.outpost.core.security import create_user_access_token, get_password_hash, verify_password
from app.outpost.db.models import User
from app.outpost.repos.base import Pagination
from app.outpost.repos.locations import LocationRepository
from app.outpost.repos.users import UserRepository
from app.outpost.schemas.accounts import AccountCreateRequest, AccountItem, AccountUpdateRequest
from app.outpost.services.gate import AuthorizationGate, NarrowedQuery, OperationPayload, require_uuid


def account_item(row: User) -> AccountItem:
    return AccountItem(
        id=str(row.id),
        username=row.username,
        email=row.email,
        full_name=row.full_name,
        role=row.role,
        home_location_id=str(row.home_location_id) if row.home_location_id else None,
        is_active=row.is_active,
        created_at=row.created_at,
    )


def _check_home_location(role: str, home_location_id: str | None) -> None:
    if role == "ADMIN" and home_location_id is not None:
        raise InvalidInput("ADMIN accounts carry no home location", field="home_location_id")
    if role != "ADMIN" and home_location_id is None:
        raise InvalidInput(f"{role} accounts require a home location", field="home_location_id")
    if home_location_id is not None:
        require_uuid(home_location_id, "home_location_id")


def _home_location(db, location_id: str):
    location = LocationRepository(db).get(ScopeFilter.unrestricted(), location_id)
    if location is None:
        raise InvalidInput("home location does not exist", field="home_location_id")
    return location


def list_accounts(
    gate: AuthorizationGate,
    principal: Principal,
    *,
    requested_scope=None,
    role: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    pagination: Pagination,
) -> dict:
    def load(query: NarrowedQuery) -> dict:
        rows, total = UserRepository(gate.db).find(
            query.scope,
            role=query.filters.get("role"),
            is_active=query.filters.get("is_active"),
            search=query.filters.get("search"),
            pagination=query.pagination,
        )
        return {
            "accounts": [account_item(row).model_dump(mode="json") for row in rows],
            "total": total,
        }

    payload = OperationPayload(
        requested_scope=requested_scope,
        filters={"role": role, "is_active": is_active, "search": search},
        pagination=pagination,
    )
    return gate.read(principal, Operation.LIST_ACCOUNTS, payload, load)


def get_account(gate: AuthorizationGate, principal: Principal, user_id: str) -> dict:
    def load(query: NarrowedQuery) -> dict:
        row = UserRepository(gate.db).get(query.scope, query.resource_id)
        if row is None:
            raise Denied("account not found or outside scope")
        return account_item(row).model_dump(mode="json")

    return gate.read(principal, Operation.GET_ACCOUNT, OperationPayload(resource_id=user_id), load)


def create_account(gate: AuthorizationGate, principal: Principal, request: AccountCreateRequest) -> AccountItem:
    _check_home_location(request.role, request.home_location_id)

    def target(query: NarrowedQuery):
        if request.home_location_id is None:
            return None
        return _home_location(gate.db, request.home_location_id)

    def mutate(query: NarrowedQuery, location) -> User:
        repo = UserRepository(gate.db)
        if repo.exists_with_identity(username=request.username, email=str(request.email)):
            raise InvalidInput("username or email already in use", field="username")
        return repo.add(
            User(
                username=request.username,
                email=str(request.email),
                full_name=request.full_name,
                hashed_password=get_password_hash(request.password),
                role=request.role,
                home_location_id=location.id if location is not None else None,
                is_active=True,
            )
        )

    row = gate.write(
        principal,
        Operation.CREATE_ACCOUNT,
        OperationPayload(),
        target=target if request.home_location_id is not None else None,
        mutate=mutate,
    )
    return account_item(row)


def update_account(
    gate: AuthorizationGate,
    principal: Principal,
    user_id: str,
    request: AccountUpdateRequest,
) -> AccountItem:
    def target(query: NarrowedQuery):
        return UserRepository(gate.db).get_by_id(query.resource_id)

    def mutate(query: NarrowedQuery, row: User) -> User:
        changes = request.model_dump(exclude_unset=True)
        role = changes.get("role") or row.role
        home_location_id = changes.get("home_location_id", str(row.home_location_id) if row.home_location_id else None)
        if role == "ADMIN" and "home_location_id" not in changes:
            home_location_id = None
        _check_home_location(role, home_location_id)

        location = _home_location(gate.db, home_location_id) if home_location_id is not None else None
        row.role = role
        row.home_location_id = location.id if location is not None else None
        row.home_location = location
        if "full_name" in changes:
            row.full_name = changes["full_name"]
        if changes.get("is_active") is not None:
            row.is_active = changes["is_active"]
        gate.db.flush()
        return row

    row = gate.write(
        principal,
        Operation.UPDATE_ACCOUNT,
        OperationPayload(resource_id=user_id),
        target=target,
        mutate=mutate,
    )
    return account_item(row)


def authenticate(db, identifier: str, password: str) -> tuple[User, str]:
    """Check credentials and issue a bearer token for the matching user."""
    user = UserRepository(db).get_by_username_or_email(identifier)
    if user is None or not verify_password(password, user.hashed_password):
        raise AppError(ErrorCatalog.INVALID_CREDENTIALS)
    if not user.is_active:
        raise AppError(ErrorCatalog.INVALID_CREDENTIALS)
    principal_from_user(user)
    return user, create_user_access_token(user)
