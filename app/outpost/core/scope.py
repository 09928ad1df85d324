from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from app.outpost.core.context import Principal, Role
from app.outpost.core.error_catalog import Denied


class ResourceKind(str, Enum):
    LOCATION = "location"
    REGION = "region"
    CATALOG_ITEM = "catalog_item"
    TRANSACTION = "transaction"
    DASHBOARD = "dashboard"
    ACCOUNT = "account"
    PROFILE = "profile"


LOCATION_SCOPED_KINDS = frozenset(
    {ResourceKind.CATALOG_ITEM, ResourceKind.TRANSACTION, ResourceKind.DASHBOARD}
)


class Operation(str, Enum):
    LIST_LOCATIONS = "list_locations"
    GET_LOCATION = "get_location"
    CREATE_LOCATION = "create_location"
    UPDATE_LOCATION = "update_location"
    DELETE_LOCATION = "delete_location"
    LIST_REGIONS = "list_regions"
    LIST_CATALOG_ITEMS = "list_catalog_items"
    GET_CATALOG_ITEM = "get_catalog_item"
    LIST_CATALOG_CATEGORIES = "list_catalog_categories"
    CREATE_CATALOG_ITEM = "create_catalog_item"
    UPDATE_CATALOG_ITEM = "update_catalog_item"
    DELETE_CATALOG_ITEM = "delete_catalog_item"
    LIST_TRANSACTIONS = "list_transactions"
    GET_TRANSACTION = "get_transaction"
    CREATE_ORDER = "create_order"
    ADD_ORDER_ITEM = "add_order_item"
    CHANGE_TRANSACTION_STATUS = "change_transaction_status"
    VIEW_DASHBOARD = "view_dashboard"
    LIST_ACCOUNTS = "list_accounts"
    GET_ACCOUNT = "get_account"
    CREATE_ACCOUNT = "create_account"
    UPDATE_ACCOUNT = "update_account"
    VIEW_PROFILE = "view_profile"

    @property
    def resource_kind(self) -> ResourceKind:
        return _OPERATION_KINDS[self]

    @property
    def is_write(self) -> bool:
        return self in WRITE_OPERATIONS


_OPERATION_KINDS = {
    Operation.LIST_LOCATIONS: ResourceKind.LOCATION,
    Operation.GET_LOCATION: ResourceKind.LOCATION,
    Operation.CREATE_LOCATION: ResourceKind.LOCATION,
    Operation.UPDATE_LOCATION: ResourceKind.LOCATION,
    Operation.DELETE_LOCATION: ResourceKind.LOCATION,
    Operation.LIST_REGIONS: ResourceKind.REGION,
    Operation.LIST_CATALOG_ITEMS: ResourceKind.CATALOG_ITEM,
    Operation.GET_CATALOG_ITEM: ResourceKind.CATALOG_ITEM,
    Operation.LIST_CATALOG_CATEGORIES: ResourceKind.CATALOG_ITEM,
    Operation.CREATE_CATALOG_ITEM: ResourceKind.CATALOG_ITEM,
    Operation.UPDATE_CATALOG_ITEM: ResourceKind.CATALOG_ITEM,
    Operation.DELETE_CATALOG_ITEM: ResourceKind.CATALOG_ITEM,
    Operation.LIST_TRANSACTIONS: ResourceKind.TRANSACTION,
    Operation.GET_TRANSACTION: ResourceKind.TRANSACTION,
    Operation.CREATE_ORDER: ResourceKind.TRANSACTION,
    Operation.ADD_ORDER_ITEM: ResourceKind.TRANSACTION,
    Operation.CHANGE_TRANSACTION_STATUS: ResourceKind.TRANSACTION,
    Operation.VIEW_DASHBOARD: ResourceKind.DASHBOARD,
    Operation.LIST_ACCOUNTS: ResourceKind.ACCOUNT,
    Operation.GET_ACCOUNT: ResourceKind.ACCOUNT,
    Operation.CREATE_ACCOUNT: ResourceKind.ACCOUNT,
    Operation.UPDATE_ACCOUNT: ResourceKind.ACCOUNT,
    Operation.VIEW_PROFILE: ResourceKind.PROFILE,
}

WRITE_OPERATIONS = frozenset(
    {
        Operation.CREATE_LOCATION,
        Operation.UPDATE_LOCATION,
        Operation.DELETE_LOCATION,
        Operation.CREATE_CATALOG_ITEM,
        Operation.UPDATE_CATALOG_ITEM,
        Operation.DELETE_CATALOG_ITEM,
        Operation.CREATE_ORDER,
        Operation.ADD_ORDER_ITEM,
        Operation.CHANGE_TRANSACTION_STATUS,
        Operation.CREATE_ACCOUNT,
        Operation.UPDATE_ACCOUNT,
    }
)

MEMBER_WRITE_OPERATIONS = frozenset({Operation.CREATE_ORDER, Operation.ADD_ORDER_ITEM})

ADMIN_ONLY_LOCATION_OPERATIONS = frozenset({Operation.CREATE_LOCATION, Operation.DELETE_LOCATION})


class ScopeKind(str, Enum):
    NONE = "NONE"
    LOCATION = "LOCATION"
    REGION = "REGION"


@dataclass(frozen=True)
class ScopeFilter:
    kind: ScopeKind
    location_id: str | None = None
    region_id: str | None = None

    def __post_init__(self) -> None:
        if self.kind is ScopeKind.LOCATION and not self.location_id:
            raise ValueError("LOCATION scope requires a location id")
        if self.kind is ScopeKind.REGION and not self.region_id:
            raise ValueError("REGION scope requires a region id")

    @classmethod
    def unrestricted(cls) -> "ScopeFilter":
        return cls(ScopeKind.NONE)

    @classmethod
    def for_location(cls, location_id: str) -> "ScopeFilter":
        return cls(ScopeKind.LOCATION, location_id=str(location_id))

    @classmethod
    def for_region(cls, region_id: str) -> "ScopeFilter":
        return cls(ScopeKind.REGION, region_id=str(region_id))

    @property
    def token(self) -> str:
        if self.kind is ScopeKind.LOCATION:
            return f"location={self.location_id}"
        if self.kind is ScopeKind.REGION:
            return f"region={self.region_id}"
        return "none"

    def covers(self, *, location_id: str | None, region_id: str | None) -> bool:
        """Whether a row with the given partition keys falls inside this scope."""
        if self.kind is ScopeKind.NONE:
            return True
        if self.kind is ScopeKind.LOCATION:
            return location_id is not None and str(location_id) == self.location_id
        return region_id is not None and str(region_id) == self.region_id


def resolve(
    principal: Principal,
    resource_kind: ResourceKind,
    requested_filter: ScopeFilter | None = None,
    *,
    operation: Operation | None = None,
) -> ScopeFilter:
    """Map a principal and resource kind to the filter every query must carry.

    Raises ``Denied`` when the principal may not perform the operation at all.
    Denials are evaluated before narrowing so that a narrowing match never
    hides a role violation. Without an ``operation`` the call is treated as a
    read of ``resource_kind``.
    """
    if operation is not None and operation.resource_kind is not resource_kind:
        raise ValueError(f"{operation.value} does not operate on {resource_kind.value}")
    is_write = operation is not None and operation.is_write

    if not principal.active:
        raise Denied("inactive principal")

    if principal.role is Role.ADMIN:
        if requested_filter is None:
            return ScopeFilter.unrestricted()
        return requested_filter

    if principal.role is Role.MEMBER:
        if is_write and operation not in MEMBER_WRITE_OPERATIONS:
            raise Denied(f"member may not perform {operation.value}")
        if resource_kind is ResourceKind.ACCOUNT:
            raise Denied("account management requires ADMIN")

    if principal.role is Role.MANAGER:
        if resource_kind is ResourceKind.ACCOUNT:
            raise Denied("account management requires ADMIN")
        if operation in ADMIN_ONLY_LOCATION_OPERATIONS:
            raise Denied(f"manager may not perform {operation.value}")
        if (
            resource_kind is ResourceKind.LOCATION
            and requested_filter is not None
            and requested_filter.region_id is not None
            and requested_filter.region_id != principal.home_region_id
        ):
            raise Denied("cross-region read")

    if resource_kind in LOCATION_SCOPED_KINDS:
        return ScopeFilter.for_location(principal.home_location_id)

    if resource_kind is ResourceKind.LOCATION:
        if is_write:
            return ScopeFilter.for_location(principal.home_location_id)
        if not principal.home_region_id:
            raise Denied("principal has no home region")
        return ScopeFilter.for_region(principal.home_region_id)

    return ScopeFilter.unrestricted()
