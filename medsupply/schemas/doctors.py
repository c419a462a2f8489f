from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class DoctorBase(BaseModel):
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    specialization: Optional[str] = None
    location: Optional[str] = None
    portfolio_id: Optional[int] = None
    hospital_id: Optional[int] = None
    is_active: bool = True


class DoctorCreate(DoctorBase):
    pass


class DoctorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    specialization: Optional[str] = None
    location: Optional[str] = None
    portfolio_id: Optional[int] = None
    hospital_id: Optional[int] = None
    is_active: Optional[bool] = None


class Doctor(DoctorBase):
    id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
