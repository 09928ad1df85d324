from sqlalchemy import select

from app.outpost.db.models import AuditEvent


class AuditRepository:
    def __init__(self, db):
        self.db = db

    def create(self, event: AuditEvent) -> AuditEvent:
        self.db.add(event)
        self.db.commit()
        return event

    def list_for_principal(self, principal_id: str, *, limit: int = 50):
        stmt = (
            select(AuditEvent)
            .where(AuditEvent.principal_id == principal_id)
            .order_by(AuditEvent.created_at.desc())
            .limit(limit)
        )
        return self.db.execute(stmt).scalars().all()
