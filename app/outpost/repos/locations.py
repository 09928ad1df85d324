from sqlalchemy import func, select

from app.outpost.core.scope import ScopeFilter
from app.outpost.db.models import Location, Region
from app.outpost.repos.base import Pagination, apply_pagination, apply_scope


class LocationRepository:
    def __init__(self, db):
        self.db = db

    def get(self, scope: ScopeFilter, location_id: str):
        stmt = apply_scope(select(Location).where(Location.id == location_id), scope, Location.id)
        return self.db.execute(stmt).scalars().first()

    def find(
        self,
        scope: ScopeFilter,
        *,
        active: bool | None = None,
        search: str | None = None,
        pagination: Pagination | None = None,
    ):
        stmt = apply_scope(select(Location), scope, Location.id)
        count_stmt = apply_scope(select(func.count()).select_from(Location), scope, Location.id)

        if active is not None:
            stmt = stmt.where(Location.is_active.is_(active))
            count_stmt = count_stmt.where(Location.is_active.is_(active))

        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(Location.name.ilike(pattern))
            count_stmt = count_stmt.where(Location.name.ilike(pattern))

        stmt = apply_pagination(stmt.order_by(Location.name.asc(), Location.id.asc()), pagination)
        rows = self.db.execute(stmt).scalars().all()
        total = self.db.execute(count_stmt).scalar_one()
        return rows, total

    def names_by_id(self, scope: ScopeFilter, location_ids: list[str]) -> dict[str, str]:
        if not location_ids:
            return {}
        stmt = apply_scope(select(Location.id, Location.name).where(Location.id.in_(location_ids)), scope, Location.id)
        return {str(location_id): name for location_id, name in self.db.execute(stmt).all()}

    def add(self, location: Location) -> Location:
        self.db.add(location)
        self.db.flush()
        return location

    def delete(self, location: Location) -> None:
        self.db.delete(location)
        self.db.flush()


class RegionRepository:
    def __init__(self, db):
        self.db = db

    def get(self, region_id: str):
        return self.db.get(Region, region_id)

    def find(self):
        stmt = select(Region).order_by(Region.name.asc())
        return self.db.execute(stmt).scalars().all()
