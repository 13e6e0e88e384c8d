"""Pydantic request / response models for the auth endpoints."""

from typing import Annotated, Optional

from pydantic import EmailStr, Field, StringConstraints, field_validator

from core.schemas import ApiModel, UtcDatetime
from models.user import Role

PASSWORD_MIN_LENGTH = 6

# Surrounding whitespace is dropped before the length check
DisplayName = Annotated[
    str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)
]


def _normalise_email(value):
    # Emails are unique case-insensitively; store and compare lower-case
    return value.strip().lower() if isinstance(value, str) else value


# -- Requests --------------------------------------------------------------


class RegisterRequest(ApiModel):
    email: EmailStr
    password: str = Field(min_length=PASSWORD_MIN_LENGTH)
    name: DisplayName

    normalise_email = field_validator("email", mode="before")(_normalise_email)


class LoginRequest(ApiModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)

    normalise_email = field_validator("email", mode="before")(_normalise_email)


class ForgotPasswordRequest(ApiModel):
    email: EmailStr

    normalise_email = field_validator("email", mode="before")(_normalise_email)


class ResetPasswordRequest(ApiModel):
    password: str = Field(min_length=PASSWORD_MIN_LENGTH)


class UpdateProfileRequest(ApiModel):
    name: Optional[DisplayName] = None
    email: Optional[EmailStr] = None
    # Accepted only so it can be refused with a clear message
    password: Optional[str] = None

    normalise_email = field_validator("email", mode="before")(_normalise_email)


class UpdatePasswordRequest(ApiModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=PASSWORD_MIN_LENGTH)


class DeactivateRequest(ApiModel):
    password: str = Field(min_length=1)


# -- Responses -------------------------------------------------------------


class UserOut(ApiModel):
    """Public view of a user.  Password and reset-token fields never appear."""

    id: int
    email: str
    name: str
    role: Role
    avatar: Optional[str] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


class UserData(ApiModel):
    user: UserOut
