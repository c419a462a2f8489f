from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from medsupply.models.warehouses import WarehouseStatus


class WarehouseBase(BaseModel):
    warehouse_code: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    drug_license_number: Optional[str] = None
    district: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    status: WarehouseStatus = WarehouseStatus.ACTIVE
    is_default: bool = False
    branch_id: Optional[int] = None


class WarehouseCreate(WarehouseBase):
    pass


class WarehouseUpdate(BaseModel):
    warehouse_code: Optional[str] = Field(None, min_length=1)
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    drug_license_number: Optional[str] = None
    district: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    status: Optional[WarehouseStatus] = None
    is_default: Optional[bool] = None
    branch_id: Optional[int] = None


class Warehouse(WarehouseBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
