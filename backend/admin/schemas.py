"""Pydantic request / response models for the admin endpoints."""

from typing import List, Optional

from pydantic import EmailStr, field_validator

from auth.schemas import DisplayName, UserOut
from core.schemas import ApiModel
from models.user import Role


# -- Requests --------------------------------------------------------------


class UpdateUserRequest(ApiModel):
    name: Optional[DisplayName] = None
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    # Accepted only so it can be refused with a clear message
    password: Optional[str] = None

    @field_validator("email", mode="before")
    @classmethod
    def normalise_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


# -- Responses -------------------------------------------------------------


class UserListData(ApiModel):
    users: List[UserOut]
