from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class HospitalBase(BaseModel):
    name: str = Field(..., min_length=1)
    hospital_type: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    contact_person: Optional[str] = None
    gstin: Optional[str] = None
    is_active: bool = True


class HospitalCreate(HospitalBase):
    pass


class HospitalUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    hospital_type: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    contact_person: Optional[str] = None
    gstin: Optional[str] = None
    is_active: Optional[bool] = None


class Hospital(HospitalBase):
    id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
