from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime


class UserBase(BaseModel):
    username: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    role: str = "user"
    is_active: bool = True


class UserCreate(UserBase):
    permission_ids: List[int] = []


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = None
    role: Optional[str] = None
    is_active: Optional[bool] = None


class UserPermissionsUpdate(BaseModel):
    permission_ids: List[int]


class User(UserBase):
    id: int
    permission_keys: List[str] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CurrentUser(BaseModel):
    user_id: int
    username: str
    role: Optional[str] = None
    permissions: List[str]
    modules: List[str]
    capabilities: Dict[str, bool] = {}
