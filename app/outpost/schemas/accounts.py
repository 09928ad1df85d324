from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field

from app.outpost.schemas.common import ListPaginationMeta


AccountRole = Literal["ADMIN", "MANAGER", "MEMBER"]


class AccountCreateRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=150)
    email: EmailStr
    full_name: str | None = Field(default=None, max_length=255)
    password: str = Field(..., min_length=8, max_length=128)
    role: AccountRole = "MEMBER"
    home_location_id: str | None = Field(
        default=None,
        description="Required for MANAGER and MEMBER accounts; must be empty for ADMIN accounts.",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "username": "jdoe",
                    "email": "jdoe@example.com",
                    "password": "Sup3rSecret!",
                    "role": "MEMBER",
                    "home_location_id": "4f7f2c5e-9cfd-4efa-a575-2a0ad38df4e8",
                }
            ]
        }
    }


class AccountUpdateRequest(BaseModel):
    full_name: str | None = Field(default=None, max_length=255)
    role: AccountRole | None = None
    home_location_id: str | None = None
    is_active: bool | None = None


class AccountItem(BaseModel):
    id: str
    username: str
    email: str
    full_name: str | None = None
    role: AccountRole
    home_location_id: str | None = None
    is_active: bool
    created_at: datetime


class AccountResponse(BaseModel):
    account: AccountItem
    trace_id: str


class AccountListResponse(BaseModel):
    accounts: list[AccountItem]
    pagination: ListPaginationMeta
    trace_id: str
