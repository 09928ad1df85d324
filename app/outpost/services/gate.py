"""Authorization gate wrapped around every read and write.

Each entry point hands the gate a principal, an operation and a payload. The
gate resolves the caller's scope, narrows the outgoing query, checks row
ownership on writes against the authoritative store, keeps the cache coherent
and emits one audit record per decision.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Callable

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from app.outpost.core.config import settings
from app.outpost.core.context import Principal
from app.outpost.core.error_catalog import AppError, Denied, InvalidInput, Unavailable
from app.outpost.core.metrics import metrics
from app.outpost.core.scope import Operation, ResourceKind, ScopeFilter, ScopeKind, resolve
from app.outpost.db.models import CatalogItem, Location, Region, Transaction, User
from app.outpost.repos.base import Pagination
from app.outpost.services.audit import AuditRecord, AuditService
from app.outpost.services.cache import TTL_BY_KIND, CacheKeys, CacheLayer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationPayload:
    """Structured arguments of one call, before scoping."""

    resource_id: str | None = None
    requested_scope: ScopeFilter | None = None
    filters: dict[str, Any] = field(default_factory=dict)
    pagination: Pagination | None = None


@dataclass(frozen=True)
class NarrowedQuery:
    operation: Operation
    scope: ScopeFilter
    resource_id: str | None = None
    filters: dict[str, Any] = field(default_factory=dict)
    pagination: Pagination | None = None

    @property
    def resource_kind(self) -> ResourceKind:
        return self.operation.resource_kind

    @property
    def cache_key(self) -> str:
        if self.resource_id is not None:
            return CacheKeys.entity(self.resource_kind, self.scope, self.resource_id)
        identity = dict(self.filters)
        if self.pagination is not None:
            identity["limit"] = self.pagination.limit
            identity["offset"] = self.pagination.offset
        return CacheKeys.collection(self.resource_kind, self.scope, identity)


def require_uuid(value, field_name: str) -> str:
    """Canonical (lowercase, hyphenated) form of ``value``; cache keys are built from it."""
    try:
        return str(uuid.UUID(str(value)))
    except ValueError as exc:
        raise InvalidInput(f"{field_name} is malformed", field=field_name) from exc


def _canonical_scope(requested: ScopeFilter) -> ScopeFilter:
    return ScopeFilter(
        requested.kind,
        location_id=require_uuid(requested.location_id, "scope") if requested.location_id is not None else None,
        region_id=require_uuid(requested.region_id, "scope") if requested.region_id is not None else None,
    )


def validate_payload(payload: OperationPayload) -> OperationPayload:
    """Reject malformed arguments and return the payload with its ids in canonical form."""
    resource_id = payload.resource_id
    if resource_id is not None:
        resource_id = require_uuid(resource_id, "id")
    if payload.pagination is not None:
        if not 1 <= payload.pagination.limit <= settings.PAGINATION_MAX_LIMIT:
            raise InvalidInput("limit out of range", field="limit", max=settings.PAGINATION_MAX_LIMIT)
        if payload.pagination.offset < 0:
            raise InvalidInput("offset must not be negative", field="offset")
    requested = payload.requested_scope
    if requested is not None:
        requested = _canonical_scope(requested)
    return replace(payload, resource_id=resource_id, requested_scope=requested)


def row_partition(row) -> tuple[str | None, str | None]:
    """(location id, region id) a stored row belongs to."""
    if isinstance(row, Location):
        return str(row.id), str(row.region_id)
    if isinstance(row, Region):
        return None, str(row.id)
    if isinstance(row, (CatalogItem, Transaction)):
        location = row.location
        return str(row.location_id), str(location.region_id) if location is not None else None
    if isinstance(row, User):
        location = row.home_location
        if location is None:
            return None, None
        return str(location.id), str(location.region_id)
    raise TypeError(f"no partition for {type(row).__name__}")


def affected_patterns(operation: Operation, entity_id: str | None, location_id: str | None, region_id: str | None) -> list[str]:
    """Cache patterns a successful write can have made stale."""
    kind = operation.resource_kind
    patterns = CacheKeys.invalidation_patterns(
        kind, entity_id=entity_id, location_id=location_id, region_id=region_id
    )
    if kind in (ResourceKind.TRANSACTION, ResourceKind.LOCATION, ResourceKind.CATALOG_ITEM):
        patterns += CacheKeys.invalidation_patterns(
            ResourceKind.DASHBOARD, location_id=location_id, region_id=region_id
        )
    if operation is Operation.DELETE_LOCATION:
        for child in (ResourceKind.CATALOG_ITEM, ResourceKind.TRANSACTION):
            patterns += CacheKeys.invalidation_patterns(child, location_id=location_id, region_id=region_id)
            patterns.append(CacheKeys.all_entities(child))
        # home_location_id of the location's accounts is cleared by the store
        patterns += CacheKeys.invalidation_patterns(ResourceKind.ACCOUNT)
        patterns.append(CacheKeys.all_entities(ResourceKind.ACCOUNT))
    return patterns


class AuthorizationGate:
    def __init__(
        self,
        db,
        *,
        cache: CacheLayer | None = None,
        audit: AuditService | None = None,
        trace_id: str = "",
    ):
        self.db = db
        self.cache = cache if cache is not None else CacheLayer(None)
        self.audit = audit
        self.trace_id = trace_id

    def enforce(
        self,
        principal: Principal,
        operation: Operation,
        payload: OperationPayload | None = None,
    ) -> NarrowedQuery:
        payload = payload or OperationPayload()
        try:
            query = self._narrow(principal, operation, payload)
        except Denied as exc:
            self._record(principal, operation, payload.resource_id, "deny", exc.reason)
            raise
        self._record(principal, operation, payload.resource_id, "allow", None)
        return query

    def read(
        self,
        principal: Principal,
        operation: Operation,
        payload: OperationPayload | None,
        loader: Callable[[NarrowedQuery], Any],
        *,
        check: Callable[[NarrowedQuery, Any], None] | None = None,
    ) -> Any:
        """Run ``loader`` with a narrowed query, through the cache when the kind is cacheable.

        Loaders return JSON-compatible data and raise ``Denied`` for a row
        that is missing or outside the scope. ``check`` sees the result on
        hits and misses alike and raises ``Denied`` for rows the caller may
        not see even though they lie inside the scope.
        """
        if operation.is_write:
            raise ValueError(f"{operation.value} is not a read")
        payload = payload or OperationPayload()
        try:
            query = self._narrow(principal, operation, payload)
            ttl_category = TTL_BY_KIND.get(query.resource_kind)
            if ttl_category is None:
                result = self._call_repository(loader, query)
            else:
                result = self.cache.with_cache(
                    query.cache_key,
                    ttl_category,
                    lambda: self._call_repository(loader, query),
                )
            if check is not None:
                check(query, result)
        except Denied as exc:
            self._record(principal, operation, payload.resource_id, "deny", exc.reason)
            raise
        self._record(principal, operation, payload.resource_id, "allow", None)
        return result

    def write(
        self,
        principal: Principal,
        operation: Operation,
        payload: OperationPayload | None,
        *,
        target: Callable[[NarrowedQuery], Any] | None,
        mutate: Callable[[NarrowedQuery, Any], Any],
    ) -> Any:
        """Apply ``mutate`` atomically after checking ownership of ``target``.

        ``target`` loads the authoritative row the write touches (the row
        itself, or the parent a new row is created under); it must not read
        from the cache. A missing or out-of-scope target is denied exactly
        like a forbidden operation. Cache invalidation completes before this
        method returns; a failed write invalidates nothing.
        """
        if not operation.is_write:
            raise ValueError(f"{operation.value} is not a write")
        payload = payload or OperationPayload()
        resource_id = payload.resource_id
        try:
            query = self._narrow(principal, operation, payload)
            resource_id = query.resource_id
            if target is None:
                if query.scope.kind is not ScopeKind.NONE:
                    raise Denied("scoped write without an ownership target")
                row = None
                partitions = []
            else:
                row = self._call_repository(target, query)
                if row is None:
                    raise Denied("target not found or outside scope")
                location_id, region_id = row_partition(row)
                if not query.scope.covers(location_id=location_id, region_id=region_id):
                    raise Denied("target outside scope")
                partitions = [(location_id, region_id)]

            result = self._call_repository(lambda q: mutate(q, row), query)
            if result is not None and operation not in (Operation.DELETE_LOCATION, Operation.DELETE_CATALOG_ITEM):
                if isinstance(result, (Location, CatalogItem, Transaction, User)):
                    partitions.append(row_partition(result))
                    resource_id = resource_id or str(result.id)
            self._commit()
        except Denied as exc:
            self.db.rollback()
            self._record(principal, operation, resource_id, "deny", exc.reason)
            raise
        except AppError as exc:
            self.db.rollback()
            self._record(principal, operation, resource_id, "fail", exc.error.code)
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning("Write %s failed in the repository", operation.value, exc_info=True)
            self._record(principal, operation, resource_id, "fail", exc.__class__.__name__)
            raise

        patterns: list[str] = []
        for location_id, region_id in partitions or [(None, None)]:
            patterns += affected_patterns(operation, resource_id, location_id, region_id)
        self.cache.invalidate(patterns)
        self._record(principal, operation, resource_id, "allow", None)
        return result

    def _narrow(self, principal: Principal, operation: Operation, payload: OperationPayload) -> NarrowedQuery:
        payload = validate_payload(payload)
        scope = resolve(
            principal,
            operation.resource_kind,
            payload.requested_scope,
            operation=operation,
        )
        return NarrowedQuery(
            operation=operation,
            scope=scope,
            resource_id=payload.resource_id,
            filters=dict(payload.filters),
            pagination=payload.pagination,
        )

    def _call_repository(self, func: Callable[[NarrowedQuery], Any], query: NarrowedQuery) -> Any:
        try:
            return func(query)
        except (OperationalError, PoolTimeoutError) as exc:
            self.db.rollback()
            logger.warning("Repository unavailable during %s", query.operation.value, exc_info=True)
            raise Unavailable("repository") from exc

    def _commit(self) -> None:
        try:
            self.db.commit()
        except (OperationalError, PoolTimeoutError) as exc:
            self.db.rollback()
            raise Unavailable("repository") from exc
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def _record(
        self,
        principal: Principal,
        operation: Operation,
        resource_id: str | None,
        decision: str,
        reason: str | None,
    ) -> None:
        metrics.record_access_decision(resource_kind=operation.resource_kind.value, decision=decision)
        if self.audit is None:
            return
        self.audit.emit(
            AuditRecord(
                principal_id=principal.id,
                operation=operation.value,
                resource_kind=operation.resource_kind.value,
                resource_id=str(resource_id) if resource_id is not None else None,
                decision=decision,
                reason=reason,
                trace_id=self.trace_id or None,
            )
        )
