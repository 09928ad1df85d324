import uuid

import pytest

from app.outpost.core.context import Principal, Role
from app.outpost.core.error_catalog import Denied
from app.outpost.core.scope import (
    MEMBER_WRITE_OPERATIONS,
    Operation,
    ResourceKind,
    ScopeFilter,
    ScopeKind,
    resolve,
)

HOME_LOCATION = str(uuid.uuid4())
OTHER_LOCATION = str(uuid.uuid4())
HOME_REGION = str(uuid.uuid4())
OTHER_REGION = str(uuid.uuid4())


def _admin(**kwargs):
    return Principal(id=str(uuid.uuid4()), role=Role.ADMIN, **kwargs)


def _manager(**kwargs):
    return Principal(
        id=str(uuid.uuid4()),
        role=Role.MANAGER,
        home_location_id=HOME_LOCATION,
        home_region_id=HOME_REGION,
        **kwargs,
    )


def _member(**kwargs):
    return Principal(
        id=str(uuid.uuid4()),
        role=Role.MEMBER,
        home_location_id=HOME_LOCATION,
        home_region_id=HOME_REGION,
        **kwargs,
    )


def test_admin_is_unrestricted_without_a_requested_filter():
    scope = resolve(_admin(), ResourceKind.CATALOG_ITEM)
    assert scope == ScopeFilter.unrestricted()
    assert scope.kind is ScopeKind.NONE


def test_admin_requested_filter_is_honored():
    requested = ScopeFilter.for_region(OTHER_REGION)
    assert resolve(_admin(), ResourceKind.TRANSACTION, requested) == requested


@pytest.mark.parametrize("kind", [ResourceKind.CATALOG_ITEM, ResourceKind.TRANSACTION, ResourceKind.DASHBOARD])
@pytest.mark.parametrize("factory", [_manager, _member])
def test_location_scoped_kinds_pin_non_admins_to_home(kind, factory):
    requested = ScopeFilter.for_location(OTHER_LOCATION)
    scope = resolve(factory(), kind, requested)
    assert scope == ScopeFilter.for_location(HOME_LOCATION)


def test_manager_location_reads_span_home_region():
    scope = resolve(_manager(), ResourceKind.LOCATION, operation=Operation.LIST_LOCATIONS)
    assert scope == ScopeFilter.for_region(HOME_REGION)


def test_manager_cross_region_location_read_is_denied():
    with pytest.raises(Denied) as exc_info:
        resolve(
            _manager(),
            ResourceKind.LOCATION,
            ScopeFilter.for_region(OTHER_REGION),
            operation=Operation.LIST_LOCATIONS,
        )
    assert exc_info.value.reason == "cross-region read"


def test_member_cross_region_request_is_silently_narrowed():
    scope = resolve(
        _member(),
        ResourceKind.LOCATION,
        ScopeFilter.for_region(OTHER_REGION),
        operation=Operation.LIST_LOCATIONS,
    )
    assert scope == ScopeFilter.for_region(HOME_REGION)


def test_manager_location_update_is_pinned_to_home_location():
    scope = resolve(_manager(), ResourceKind.LOCATION, operation=Operation.UPDATE_LOCATION)
    assert scope == ScopeFilter.for_location(HOME_LOCATION)


@pytest.mark.parametrize("operation", [Operation.CREATE_LOCATION, Operation.DELETE_LOCATION])
def test_manager_cannot_create_or_delete_locations(operation):
    with pytest.raises(Denied):
        resolve(_manager(), ResourceKind.LOCATION, operation=operation)


@pytest.mark.parametrize(
    "operation",
    [
        Operation.CREATE_CATALOG_ITEM,
        Operation.UPDATE_CATALOG_ITEM,
        Operation.DELETE_CATALOG_ITEM,
        Operation.CHANGE_TRANSACTION_STATUS,
        Operation.UPDATE_LOCATION,
    ],
)
def test_member_writes_outside_orders_are_denied(operation):
    with pytest.raises(Denied):
        resolve(_member(), operation.resource_kind, operation=operation)


@pytest.mark.parametrize("operation", sorted(MEMBER_WRITE_OPERATIONS, key=lambda op: op.value))
def test_member_order_writes_are_scoped_to_home(operation):
    scope = resolve(_member(), operation.resource_kind, operation=operation)
    assert scope == ScopeFilter.for_location(HOME_LOCATION)


@pytest.mark.parametrize("factory", [_manager, _member])
def test_account_management_requires_admin(factory):
    with pytest.raises(Denied):
        resolve(factory(), ResourceKind.ACCOUNT, operation=Operation.LIST_ACCOUNTS)
    assert resolve(_admin(), ResourceKind.ACCOUNT, operation=Operation.LIST_ACCOUNTS).kind is ScopeKind.NONE


@pytest.mark.parametrize("factory", [_admin, _manager, _member])
def test_inactive_principals_are_denied_everything(factory):
    principal = factory(active=False)
    with pytest.raises(Denied) as exc_info:
        resolve(principal, ResourceKind.REGION, operation=Operation.LIST_REGIONS)
    assert exc_info.value.reason == "inactive principal"


def test_reference_data_is_unrestricted_for_everyone():
    assert resolve(_member(), ResourceKind.REGION).kind is ScopeKind.NONE
    assert resolve(_member(), ResourceKind.PROFILE, operation=Operation.VIEW_PROFILE).kind is ScopeKind.NONE


def test_operation_must_match_resource_kind():
    with pytest.raises(ValueError):
        resolve(_admin(), ResourceKind.LOCATION, operation=Operation.LIST_CATALOG_ITEMS)


def test_every_operation_maps_to_a_resource_kind():
    for operation in Operation:
        assert isinstance(operation.resource_kind, ResourceKind)


def test_principal_invariants():
    with pytest.raises(ValueError):
        Principal(id="a", role=Role.ADMIN, home_location_id=HOME_LOCATION)
    with pytest.raises(ValueError):
        Principal(id="m", role=Role.MEMBER)


def test_scope_filter_covers():
    assert ScopeFilter.unrestricted().covers(location_id=None, region_id=None)
    assert ScopeFilter.for_location(HOME_LOCATION).covers(location_id=HOME_LOCATION, region_id=None)
    assert not ScopeFilter.for_location(HOME_LOCATION).covers(location_id=OTHER_LOCATION, region_id=HOME_REGION)
    assert ScopeFilter.for_region(HOME_REGION).covers(location_id=OTHER_LOCATION, region_id=HOME_REGION)
    assert not ScopeFilter.for_region(HOME_REGION).covers(location_id=HOME_LOCATION, region_id=None)
