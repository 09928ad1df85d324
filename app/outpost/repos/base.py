from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Select, select

from app.outpost.core.scope import ScopeFilter, ScopeKind
from app.outpost.db.models import Location


@dataclass(frozen=True)
class Pagination:
    limit: int
    offset: int = 0


def apply_scope(stmt: Select, scope: ScopeFilter, location_column) -> Select:
    """Narrow ``stmt`` to rows whose ``location_column`` lies inside ``scope``."""
    if scope.kind is ScopeKind.LOCATION:
        return stmt.where(location_column == scope.location_id)
    if scope.kind is ScopeKind.REGION:
        region_locations = select(Location.id).where(Location.region_id == scope.region_id)
        return stmt.where(location_column.in_(region_locations))
    return stmt


def apply_pagination(stmt: Select, pagination: Pagination | None) -> Select:
    if pagination is None:
        return stmt
    if pagination.offset:
        stmt = stmt.offset(pagination.offset)
    return stmt.limit(pagination.limit)
