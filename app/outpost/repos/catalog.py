from sqlalchemy import func, select

from app.outpost.core.scope import ScopeFilter
from app.outpost.db.models import CatalogItem
from app.outpost.repos.base import Pagination, apply_pagination, apply_scope


class CatalogItemRepository:
    def __init__(self, db):
        self.db = db

    def get(self, scope: ScopeFilter, item_id: str):
        stmt = apply_scope(select(CatalogItem).where(CatalogItem.id == item_id), scope, CatalogItem.location_id)
        return self.db.execute(stmt).scalars().first()

    def find(
        self,
        scope: ScopeFilter,
        *,
        available: bool | None = None,
        category: str | None = None,
        search: str | None = None,
        pagination: Pagination | None = None,
    ):
        stmt = apply_scope(select(CatalogItem), scope, CatalogItem.location_id)
        count_stmt = apply_scope(select(func.count()).select_from(CatalogItem), scope, CatalogItem.location_id)

        if available is not None:
            stmt = stmt.where(CatalogItem.is_available.is_(available))
            count_stmt = count_stmt.where(CatalogItem.is_available.is_(available))

        if category:
            normalized = category.strip().lower()
            stmt = stmt.where(func.lower(CatalogItem.category) == normalized)
            count_stmt = count_stmt.where(func.lower(CatalogItem.category) == normalized)

        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(CatalogItem.name.ilike(pattern))
            count_stmt = count_stmt.where(CatalogItem.name.ilike(pattern))

        stmt = apply_pagination(stmt.order_by(CatalogItem.name.asc(), CatalogItem.id.asc()), pagination)
        rows = self.db.execute(stmt).scalars().all()
        total = self.db.execute(count_stmt).scalar_one()
        return rows, total

    def categories(self, scope: ScopeFilter) -> list[str]:
        stmt = apply_scope(
            select(CatalogItem.category).where(CatalogItem.category.is_not(None)).distinct(),
            scope,
            CatalogItem.location_id,
        )
        return list(self.db.execute(stmt.order_by(CatalogItem.category.asc())).scalars().all())

    def names_by_id(self, scope: ScopeFilter, item_ids: list[str]) -> dict[str, str]:
        if not item_ids:
            return {}
        stmt = apply_scope(
            select(CatalogItem.id, CatalogItem.name).where(CatalogItem.id.in_(item_ids)),
            scope,
            CatalogItem.location_id,
        )
        return {str(item_id): name for item_id, name in self.db.execute(stmt).all()}

    def add(self, item: CatalogItem) -> CatalogItem:
        self.db.add(item)
        self.db.flush()
        return item

    def delete(self, item: CatalogItem) -> None:
        self.db.delete(item)
        self.db.flush()
