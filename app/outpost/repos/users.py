from sqlalchemy import func, or_, select
from sqlalchemy.orm import joinedload

from app.outpost.core.scope import ScopeFilter
from app.outpost.db.models import User
from app.outpost.repos.base import Pagination, apply_pagination, apply_scope


class UserRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, user_id: str):
        stmt = select(User).options(joinedload(User.home_location)).where(User.id == user_id)
        return self.db.execute(stmt).scalars().first()

    def get(self, scope: ScopeFilter, user_id: str):
        stmt = apply_scope(select(User).where(User.id == user_id), scope, User.home_location_id)
        return self.db.execute(stmt).scalars().first()

    def find(
        self,
        scope: ScopeFilter,
        *,
        role: str | None = None,
        is_active: bool | None = None,
        search: str | None = None,
        pagination: Pagination | None = None,
    ):
        stmt = apply_scope(select(User), scope, User.home_location_id)
        count_stmt = apply_scope(select(func.count()).select_from(User), scope, User.home_location_id)

        if role:
            normalized_role = role.strip().upper()
            stmt = stmt.where(func.upper(User.role) == normalized_role)
            count_stmt = count_stmt.where(func.upper(User.role) == normalized_role)

        if is_active is not None:
            stmt = stmt.where(User.is_active.is_(is_active))
            count_stmt = count_stmt.where(User.is_active.is_(is_active))

        if search:
            pattern = f"%{search.strip()}%"
            search_filter = or_(User.username.ilike(pattern), User.email.ilike(pattern))
            stmt = stmt.where(search_filter)
            count_stmt = count_stmt.where(search_filter)

        stmt = apply_pagination(stmt.order_by(User.username.asc()), pagination)
        rows = self.db.execute(stmt).scalars().all()
        total = self.db.execute(count_stmt).scalar_one()
        return rows, total

    def get_by_username_or_email(self, identifier: str):
        stmt = select(User).where((User.username == identifier) | (User.email == identifier))
        return self.db.execute(stmt).scalars().first()

    def exists_with_identity(self, *, username: str, email: str, exclude_id: str | None = None) -> bool:
        stmt = select(func.count()).select_from(User).where((User.username == username) | (User.email == email))
        if exclude_id:
            stmt = stmt.where(User.id != exclude_id)
        return self.db.execute(stmt).scalar_one() > 0

    def add(self, user: User) -> User:
        self.db.add(user)
        self.db.flush()
        return user

    def display_names(self, user_ids: list[str]) -> dict[str, str]:
        if not user_ids:
            return {}
        stmt = select(User.id, User.full_name, User.username).where(User.id.in_(user_ids))
        return {str(user_id): full_name or username for user_id, full_name, username in self.db.execute(stmt).all()}
