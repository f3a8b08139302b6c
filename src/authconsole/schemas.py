"""Serialized views of entities handed to the command layer."""

from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class RoleOut(BaseModel):
    """Serialized role."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None


class UserOut(BaseModel):
    """Serialized user; the password hash is never included."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    is_logged: bool = Field(False, description="Whether the account is logged in")
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserInfo(UserOut):
    """User details including the roles currently assigned."""

    roles: List[RoleOut] = Field(default_factory=list)


class StatusOut(BaseModel):
    """Database status as reported by the ``status`` command."""

    reachable: bool
    tables: dict[str, bool] = Field(default_factory=dict)
    applied: List[str] = Field(default_factory=list)
    pending: List[str] = Field(default_factory=list)
    error: str | None = None
