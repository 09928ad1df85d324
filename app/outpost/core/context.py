from dataclasses import dataclass
from enum import Enum

from fastapi import Request


class Role(str, Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    MEMBER = "MEMBER"


@dataclass(frozen=True)
class Principal:
    """The authenticated actor for exactly one request."""

    id: str
    role: Role
    home_location_id: str | None = None
    home_region_id: str | None = None
    active: bool = True

    def __post_init__(self) -> None:
        if self.role is Role.ADMIN:
            if self.home_location_id is not None:
                raise ValueError("ADMIN principals carry no home location")
        elif not self.home_location_id:
            raise ValueError(f"{self.role.value} principals require a home location")


def get_trace_id(request: Request) -> str:
    return getattr(request.state, "trace_id", "")
