from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from app.outpost.core.security import create_user_access_token, get_password_hash
from app.outpost.db.models import CatalogItem, Location, Region, Transaction, TransactionItem, User

PASSWORD = "Sup3rSecret!"
_HASHED_PASSWORD = None


def _hashed_password() -> str:
    global _HASHED_PASSWORD
    if _HASHED_PASSWORD is None:
        _HASHED_PASSWORD = get_password_hash(PASSWORD)
    return _HASHED_PASSWORD


def create_region(db, name: str | None = None) -> Region:
    region = Region(id=uuid.uuid4(), name=name or f"Region {uuid.uuid4().hex[:6]}")
    db.add(region)
    db.commit()
    return region


def create_location(db, region: Region, name: str | None = None, **kwargs) -> Location:
    location = Location(
        id=uuid.uuid4(),
        region_id=region.id,
        name=name or f"Location {uuid.uuid4().hex[:6]}",
        city=kwargs.pop("city", "Lisbon"),
        is_active=kwargs.pop("is_active", True),
    )
    db.add(location)
    db.commit()
    return location


def create_user(db, *, role: str = "MEMBER", location: Location | None = None, **kwargs) -> User:
    suffix = uuid.uuid4().hex[:8]
    user = User(
        id=kwargs.pop("id", uuid.uuid4()),
        username=kwargs.pop("username", f"user-{suffix}"),
        email=kwargs.pop("email", f"user-{suffix}@example.com"),
        full_name=kwargs.pop("full_name", None),
        hashed_password=_hashed_password(),
        role=role,
        home_location_id=location.id if location is not None else None,
        is_active=kwargs.pop("is_active", True),
    )
    db.add(user)
    db.commit()
    return user


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_user_access_token(user)}"}


def create_catalog_item(db, location: Location, *, price: str = "10.00", **kwargs) -> CatalogItem:
    item = CatalogItem(
        id=uuid.uuid4(),
        location_id=location.id,
        name=kwargs.pop("name", f"Item {uuid.uuid4().hex[:6]}"),
        category=kwargs.pop("category", "mains"),
        price=Decimal(price),
        is_available=kwargs.pop("is_available", True),
    )
    db.add(item)
    db.commit()
    return item


def create_transaction(
    db,
    location: Location,
    customer: User,
    *,
    status: str = "COMPLETED",
    created_at: datetime | None = None,
    lines: list[tuple[CatalogItem, int]] | None = None,
) -> Transaction:
    transaction = Transaction(
        id=uuid.uuid4(),
        location_id=location.id,
        customer_id=customer.id,
        status=status,
        created_at=created_at or datetime.utcnow(),
    )
    for position, (item, quantity) in enumerate(lines or []):
        transaction.items.append(
            TransactionItem(
                id=uuid.uuid4(),
                catalog_item_id=item.id,
                position=position,
                quantity=quantity,
                unit_price=item.price,
            )
        )
    db.add(transaction)
    db.commit()
    return transaction


class Tenancy:
    """Two regions, three locations and one user of each role per location."""

    def __init__(self, db):
        self.region_a = create_region(db, "North")
        self.region_b = create_region(db, "South")
        self.location_a1 = create_location(db, self.region_a, "North One")
        self.location_a2 = create_location(db, self.region_a, "North Two")
        self.location_b1 = create_location(db, self.region_b, "South One")
        self.admin = create_user(db, role="ADMIN", username="admin", email="admin@example.com")
        self.manager_a1 = create_user(db, role="MANAGER", location=self.location_a1, username="manager-a1")
        self.manager_b1 = create_user(db, role="MANAGER", location=self.location_b1, username="manager-b1")
        self.member_a1 = create_user(db, role="MEMBER", location=self.location_a1, username="member-a1")
        self.member_a1_other = create_user(db, role="MEMBER", location=self.location_a1, username="member-a1-other")
        self.member_b1 = create_user(db, role="MEMBER", location=self.location_b1, username="member-b1")
