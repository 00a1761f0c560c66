from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from authcore.domain.entities import AccountStatus


class AccountOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="The id of the account")
    phone_number: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    display_name: str | None = None
    status: AccountStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None


class LoginOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool
    needs_otp: bool = False
    token_type: Literal["bearer"] = "bearer"
    access_token: str | None = None
    access_expires_at: datetime | None = None
    refresh_token: str | None = None
    refresh_expires_at: datetime | None = None
    account: AccountOut | None = None


class AcceptedOut(BaseModel):
    status: Literal["accepted"] = "accepted"
