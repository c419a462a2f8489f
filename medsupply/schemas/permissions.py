from pydantic import BaseModel, Field
from typing import Optional


class PermissionBase(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    resource: str = Field(..., min_length=1, pattern=r"^[a-z_]+$")
    action: str = Field(..., min_length=1, pattern=r"^[a-z0-9_]+$")


class PermissionCreate(PermissionBase):
    pass


class PermissionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None


class Permission(PermissionBase):
    id: int
    key: str

    class Config:
        from_attributes = True
