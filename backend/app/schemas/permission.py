"""Schemas dealing with user roles and permissions."""

from typing import Literal

from pydantic import BaseModel


class PermissionRead(BaseModel):
    id: int
    name: str

    model_config = {"from_attributes": True}


class PermissionsUpdate(BaseModel):
    permissions: list[str]


class RoleUpdate(BaseModel):
    role: Literal["learner", "instructor", "admin"]
