import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Protocol

from app.outpost.core.logging import log_json
from app.outpost.db.models import AuditEvent
from app.outpost.repos.audit import AuditRepository

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("outpost.audit")


@dataclass(frozen=True)
class AuditRecord:
    principal_id: str | None
    operation: str
    resource_kind: str
    resource_id: str | None
    decision: str
    reason: str | None = None
    trace_id: str | None = None
    created_at: datetime = field(default_factory=datetime.utcnow)


class AuditSink(Protocol):
    def write(self, record: AuditRecord) -> None: ...


class LoggingAuditSink:
    def write(self, record: AuditRecord) -> None:
        log_json(audit_logger, {"event": "access_decision", **asdict(record)})


class DatabaseAuditSink:
    """Persists decision records with a session of its own.

    Runs after the response has been sent, so it must not reuse the request
    session.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def write(self, record: AuditRecord) -> None:
        db = self.session_factory()
        try:
            AuditRepository(db).create(
                AuditEvent(
                    principal_id=record.principal_id,
                    trace_id=record.trace_id,
                    operation=record.operation,
                    resource_kind=record.resource_kind,
                    resource_id=record.resource_id,
                    decision=record.decision,
                    reason=record.reason,
                    created_at=record.created_at,
                )
            )
        finally:
            db.close()


def _run_now(func: Callable[[AuditRecord], None], record: AuditRecord) -> None:
    func(record)


class PendingAudit:
    """Deliveries queued during one request.

    ``flush`` runs after the response is sent, whichever response that is:
    the endpoint's own on success or the error handler's when the request
    was denied or failed.
    """

    def __init__(self):
        self._queued: list[tuple[Callable[[AuditRecord], None], AuditRecord]] = []

    def add(self, func: Callable[[AuditRecord], None], record: AuditRecord) -> None:
        self._queued.append((func, record))

    def flush(self) -> None:
        queued, self._queued = self._queued, []
        for func, record in queued:
            func(record)

    def __len__(self) -> int:
        return len(self._queued)


class AuditService:
    """Best-effort audit logging.

    Strategy: delivery is handed to ``schedule`` (a ``PendingAudit`` queue in
    HTTP requests) and sink failures are logged and swallowed so they never reach
    the caller.
    """

    def __init__(
        self,
        sinks: Iterable[AuditSink],
        schedule: Callable[[Callable[[AuditRecord], None], AuditRecord], None] | None = None,
    ):
        self.sinks = list(sinks)
        self.schedule = schedule or _run_now

    def emit(self, record: AuditRecord) -> None:
        if not self.sinks:
            return
        try:
            self.schedule(self._deliver, record)
        except Exception:
            logger.exception("Failed to schedule audit record", extra={"operation": record.operation})

    def _deliver(self, record: AuditRecord) -> None:
        for sink in self.sinks:
            try:
                sink.write(record)
            except Exception:
                logger.exception(
                    "Failed to write audit record",
                    extra={
                        "operation": record.operation,
                        "trace_id": record.trace_id,
                        "resource_id": record.resource_id,
                    },
                )
