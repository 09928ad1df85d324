from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from app.outpost.core.scope import ScopeFilter
from app.outpost.db.models import Transaction, TransactionItem
from app.outpost.repos.base import Pagination, apply_pagination, apply_scope


class TransactionRepository:
    def __init__(self, db):
        self.db = db

    def get(self, scope: ScopeFilter, transaction_id: str, *, for_update: bool = False):
        stmt = apply_scope(
            select(Transaction).options(selectinload(Transaction.items)).where(Transaction.id == transaction_id),
            scope,
            Transaction.location_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalars().first()

    def find(
        self,
        scope: ScopeFilter,
        *,
        status: str | None = None,
        customer_id: str | None = None,
        pagination: Pagination | None = None,
    ):
        stmt = apply_scope(select(Transaction).options(selectinload(Transaction.items)), scope, Transaction.location_id)
        count_stmt = apply_scope(select(func.count()).select_from(Transaction), scope, Transaction.location_id)

        if status:
            stmt = stmt.where(Transaction.status == status)
            count_stmt = count_stmt.where(Transaction.status == status)

        if customer_id:
            stmt = stmt.where(Transaction.customer_id == customer_id)
            count_stmt = count_stmt.where(Transaction.customer_id == customer_id)

        stmt = apply_pagination(stmt.order_by(Transaction.created_at.desc(), Transaction.id.asc()), pagination)
        rows = self.db.execute(stmt).scalars().all()
        total = self.db.execute(count_stmt).scalar_one()
        return rows, total

    def find_in_range(self, scope: ScopeFilter, *, start: datetime, end: datetime):
        """Transaction headers created inside ``[start, end]``, oldest first."""
        stmt = apply_scope(
            select(
                Transaction.id,
                Transaction.location_id,
                Transaction.customer_id,
                Transaction.status,
                Transaction.created_at,
            ).where(Transaction.created_at >= start, Transaction.created_at <= end),
            scope,
            Transaction.location_id,
        )
        return self.db.execute(stmt.order_by(Transaction.created_at.asc(), Transaction.id.asc())).all()

    def lines_for(self, transaction_ids: list[str]):
        """Item lines for the given transactions, in transaction then position order."""
        if not transaction_ids:
            return []
        stmt = (
            select(
                TransactionItem.transaction_id,
                TransactionItem.catalog_item_id,
                TransactionItem.quantity,
                TransactionItem.unit_price,
            )
            .where(TransactionItem.transaction_id.in_(transaction_ids))
            .order_by(TransactionItem.transaction_id.asc(), TransactionItem.position.asc())
        )
        return self.db.execute(stmt).all()

    def count_item_references(self, catalog_item_id: str) -> int:
        stmt = select(func.count()).select_from(TransactionItem).where(
            TransactionItem.catalog_item_id == catalog_item_id
        )
        return self.db.execute(stmt).scalar_one()

    def add(self, transaction: Transaction) -> Transaction:
        self.db.add(transaction)
        self.db.flush()
        return transaction

    def add_item(self, transaction: Transaction, item: TransactionItem) -> TransactionItem:
        item.position = len(transaction.items)
        transaction.items.append(item)
        self.db.flush()
        return item
