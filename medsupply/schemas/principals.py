from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class PrincipalBase(BaseModel):
    name: str = Field(..., min_length=1)
    gst_number: Optional[str] = None
    drug_license: Optional[str] = None
    email: Optional[str] = None
    mobile: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    portfolio_id: Optional[int] = None
    is_active: bool = True


class PrincipalCreate(PrincipalBase):
    pass


class PrincipalUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    gst_number: Optional[str] = None
    drug_license: Optional[str] = None
    email: Optional[str] = None
    mobile: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    portfolio_id: Optional[int] = None
    is_active: Optional[bool] = None


class Principal(PrincipalBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
