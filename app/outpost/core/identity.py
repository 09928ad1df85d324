"""Resolve an inbound bearer credential into a ``Principal``.

A principal is rebuilt from the user row on every request so that a role or
location change takes effect on the very next call. Nothing here is memoized
across requests.
"""

from __future__ import annotations

import logging
import uuid

from jose import JWTError
from pydantic import ValidationError

from app.outpost.core.context import Principal, Role
from app.outpost.core.error_catalog import AppError, Denied, ErrorCatalog
from app.outpost.core.security import TokenData, decode_token
from app.outpost.repos.users import UserRepository

logger = logging.getLogger(__name__)


def principal_from_user(user) -> Principal:
    try:
        role = Role(str(user.role).upper())
    except ValueError as exc:
        raise Denied(f"unknown role {user.role!r}") from exc

    home_location_id = None
    home_region_id = None
    if role is not Role.ADMIN:
        location = user.home_location
        if location is None:
            raise Denied("principal has no home location")
        home_location_id = str(location.id)
        home_region_id = str(location.region_id)

    return Principal(
        id=str(user.id),
        role=role,
        home_location_id=home_location_id,
        home_region_id=home_region_id,
        active=bool(user.is_active),
    )


def resolve_principal(db, token: str | None) -> Principal:
    if not token:
        raise AppError(ErrorCatalog.INVALID_TOKEN)
    try:
        token_data = TokenData(**decode_token(token))
        uuid.UUID(token_data.sub)
    except (JWTError, ValidationError, TypeError, ValueError) as exc:
        raise AppError(ErrorCatalog.INVALID_TOKEN) from exc

    user = UserRepository(db).get_by_id(token_data.sub)
    if user is None:
        logger.info("Token subject %s no longer exists", token_data.sub)
        raise AppError(ErrorCatalog.INVALID_TOKEN)
    return principal_from_user(user)
