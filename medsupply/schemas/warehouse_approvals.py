from pydantic import BaseModel, Field
from typing import Dict, List, Literal, Optional
from datetime import date, datetime
from decimal import Decimal
from medsupply.models.quality_control import Priority
from medsupply.models.warehouse_approvals import WarehouseApprovalStatus, WarehouseProductStatus, WarehouseResult


class StorageLocation(BaseModel):
    zone: Optional[str] = None
    rack: Optional[str] = None
    shelf: Optional[str] = None
    bin: Optional[str] = None


class WarehouseProductDecision(StorageLocation):
    status: Literal["approved", "rejected", "partial_approved", "on_hold"]
    approved_qty: Optional[int] = Field(None, ge=0)
    rejection_reason: Optional[str] = None
    remarks: Optional[str] = None


class WarehouseApprovalUpdate(BaseModel):
    assigned_to: Optional[str] = None
    priority: Optional[Priority] = None
    remarks: Optional[str] = None
    temperature: Optional[Decimal] = None
    humidity: Optional[Decimal] = None
    storage_condition: Optional[str] = None


class WarehouseSubmit(BaseModel):
    remarks: Optional[str] = None


class ManagerDecision(BaseModel):
    action: Literal["approve", "reject"]
    remarks: Optional[str] = None


class WarehouseApprovalProduct(BaseModel):
    id: int
    product_id: int
    product_name: str
    batch_no: Optional[str] = None
    mfg_date: Optional[date] = None
    exp_date: Optional[date] = None
    qc_passed_qty: int
    approved_qty: int
    rejected_qty: int
    status: WarehouseProductStatus
    zone: Optional[str] = None
    rack: Optional[str] = None
    shelf: Optional[str] = None
    bin: Optional[str] = None
    rejection_reason: Optional[str] = None
    remarks: Optional[str] = None
    inspected_by: Optional[str] = None
    inspected_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ManagerApproval(BaseModel):
    id: int
    level: int
    action: str
    remarks: Optional[str] = None
    approved_by: str
    approved_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WarehouseApprovalSummary(BaseModel):
    id: int
    approval_number: str
    quality_control_id: int
    purchase_order_id: int
    warehouse_id: int
    status: WarehouseApprovalStatus
    priority: Priority
    overall_result: WarehouseResult
    assigned_to: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WarehouseApproval(WarehouseApprovalSummary):
    invoice_receiving_id: int
    remarks: Optional[str] = None
    temperature: Optional[Decimal] = None
    humidity: Optional[Decimal] = None
    storage_condition: Optional[str] = None
    submitted_by: Optional[str] = None
    submitted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    inventory_status: str
    products: List[WarehouseApprovalProduct] = []
    manager_approvals: List[ManagerApproval] = []


class ProductQuantities(BaseModel):
    lines: int
    qc_passed_qty: int
    approved_qty: int
    rejected_qty: int


class WarehouseDashboard(BaseModel):
    days: int
    total: int
    by_status: Dict[str, int] = {}
    open: int
    awaiting_manager: int
    products: ProductQuantities
    recent: List[WarehouseApprovalSummary] = []
