from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import date, datetime
from decimal import Decimal
from medsupply.models.quality_control import (
    ApprovalStatus,
    Priority,
    QCItemStatus,
    QCProductStatus,
    QCReason,
    QCResult,
    QCStatus,
    QCType,
)


class QualityControlCreate(BaseModel):
    invoice_receiving_id: int
    qc_type: QCType = QCType.STANDARD
    priority: Priority = Priority.MEDIUM
    assigned_to: Optional[str] = None
    temperature: Optional[Decimal] = None
    humidity: Optional[Decimal] = None
    light_condition: Optional[str] = None


class QCItemUpdate(BaseModel):
    status: QCItemStatus
    reasons: List[QCReason] = []
    remarks: Optional[str] = None


class QCBulkItemUpdate(QCItemUpdate):
    # None means every item of the product still pending
    item_ids: Optional[List[int]] = None


class QCDecision(BaseModel):
    remarks: Optional[str] = None
    warehouse_id: Optional[int] = None


class QCSubmit(BaseModel):
    remarks: Optional[str] = None


class QCItem(BaseModel):
    id: int
    item_number: int
    status: QCItemStatus
    reasons: List[QCReason] = []
    remarks: Optional[str] = None
    qc_by: Optional[str] = None
    qc_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class QCProduct(BaseModel):
    id: int
    product_id: int
    product_name: str
    batch_no: Optional[str] = None
    mfg_date: Optional[date] = None
    exp_date: Optional[date] = None
    received_qty: int
    qc_qty: int
    passed_qty: int
    failed_qty: int
    overall_status: QCProductStatus
    reason_summary: Dict[str, int] = {}
    items: List[QCItem] = []

    class Config:
        from_attributes = True


class QualityControlSummary(BaseModel):
    id: int
    qc_number: str
    invoice_receiving_id: int
    purchase_order_id: int
    status: QCStatus
    qc_type: QCType
    priority: Priority
    overall_result: QCResult
    approval_status: ApprovalStatus
    assigned_to: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class QualityControl(QualityControlSummary):
    qc_by: Optional[str] = None
    qc_date: Optional[datetime] = None
    qc_remarks: Optional[str] = None
    approved_by: Optional[str] = None
    approval_date: Optional[datetime] = None
    approval_remarks: Optional[str] = None
    temperature: Optional[Decimal] = None
    humidity: Optional[Decimal] = None
    light_condition: Optional[str] = None
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    products: List[QCProduct] = []


class QCDashboard(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_result: Dict[str, int]
    pending_approval: int
