from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from medsupply.models.branches import ContactDepartment


class BranchBase(BaseModel):
    name: str = Field(..., min_length=1)
    branch_code: Optional[str] = None
    email: str = Field(..., min_length=3)
    phone: str = Field(..., min_length=1)
    alternate_phone: Optional[str] = None
    drug_license_number: str = Field(..., min_length=1)
    gst_number: str = Field(..., min_length=1)
    pan_number: str = Field(..., min_length=1)
    gst_address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    pincode: str = Field(..., min_length=1)
    remarks: Optional[str] = None
    is_active: bool = True


class BranchCreate(BranchBase):
    pass


class BranchUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    branch_code: Optional[str] = None
    email: Optional[str] = Field(None, min_length=3)
    phone: Optional[str] = Field(None, min_length=1)
    alternate_phone: Optional[str] = None
    drug_license_number: Optional[str] = Field(None, min_length=1)
    gst_number: Optional[str] = Field(None, min_length=1)
    pan_number: Optional[str] = Field(None, min_length=1)
    gst_address: Optional[str] = Field(None, min_length=1)
    city: Optional[str] = Field(None, min_length=1)
    state: Optional[str] = Field(None, min_length=1)
    pincode: Optional[str] = Field(None, min_length=1)
    remarks: Optional[str] = None
    is_active: Optional[bool] = None


class BranchWarehouse(BaseModel):
    id: int
    warehouse_code: str
    name: str

    class Config:
        from_attributes = True


class Branch(BranchBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    warehouses: List[BranchWarehouse] = []

    class Config:
        from_attributes = True


class BranchContactBase(BaseModel):
    contact_person_name: str = Field(..., min_length=1)
    department: ContactDepartment
    designation: str = Field(..., min_length=1)
    contact_number: str = Field(..., min_length=1)
    alternate_contact_person: Optional[str] = None
    email_address: str = Field(..., min_length=3)


class BranchContactCreate(BranchContactBase):
    warehouse_id: Optional[int] = None


class BranchContactUpdate(BaseModel):
    contact_person_name: Optional[str] = Field(None, min_length=1)
    department: Optional[ContactDepartment] = None
    designation: Optional[str] = Field(None, min_length=1)
    contact_number: Optional[str] = Field(None, min_length=1)
    alternate_contact_person: Optional[str] = None
    email_address: Optional[str] = Field(None, min_length=3)
    is_active: Optional[bool] = None


class BranchContact(BranchContactBase):
    id: int
    branch_id: int
    warehouse_id: Optional[int] = None
    contact_type: str
    is_active: bool
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
