# gmhs/backend/api/schemas/common.py
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional


class ApiModel(BaseModel):
    """Base for every request/response body. The wire format is camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def require_text(value: Optional[str]) -> str:
    """Trims the value and rejects blank strings."""
    if value is None or not value.strip():
        raise ValueError("must not be blank")
    return value.strip()


class UserSummary(ApiModel):
    id: str
    name: str
    email: Optional[str] = None


class StudentSummary(ApiModel):
    id: str
    name: str
    class_name: str


class ActionSummary(ApiModel):
    id: str
    description: str
    created_at: datetime


class MessageResponse(ApiModel):
    message: str
