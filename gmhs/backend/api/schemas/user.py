# gmhs/backend/api/schemas/user.py
from pydantic import Field, field_validator
from datetime import datetime
from typing import Optional

from .common import ApiModel, require_text
from ...models.db_models import Role


class SignupRequest(ApiModel):
    name: str
    email: str
    password: str = Field(..., min_length=1)
    role: str

    @field_validator("name", "email")
    def not_blank(cls, v):
        return require_text(v)


class SigninRequest(ApiModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserResponse(ApiModel):
    """A user as exposed over the API. The password hash never leaves the service."""
    id: str
    name: str
    email: str
    role: Role
    created_at: datetime


class SignupResponse(ApiModel):
    message: str
    user: UserResponse


class SigninResponse(ApiModel):
    message: str
    role: Role
    id: str
    access_token: str
    token_type: str = "bearer"


class ParentResponse(ApiModel):
    id: str
    name: str
    email: str
    created_at: datetime


# Internal representation of JWT data
class TokenData(ApiModel):
    sub: Optional[str] = None
    role: Optional[Role] = None
