from pydantic import BaseModel
from typing import Any, Dict, List, Optional
from datetime import date, datetime
from decimal import Decimal
from medsupply.models.products import ProductUnit
from medsupply.utils.po_totals import DiscountType, TaxType
from medsupply.utils.workflow_table import POStatus, Stage


class AddressBlock(BaseModel):
    branch_warehouse: Optional[str] = None
    name: Optional[str] = None
    address: Optional[str] = None
    gstin: Optional[str] = None
    drug_license: Optional[str] = None
    phone: Optional[str] = None


class AdjustmentIn(BaseModel):
    type: DiscountType = DiscountType.PERCENTAGE
    value: Decimal = Decimal(0)


class PurchaseOrderItemIn(BaseModel):
    product_id: Optional[int] = None
    quantity: int = 0
    foc: int = 0
    unit_price: Decimal = Decimal(0)
    discount: Decimal = Decimal(0)
    discount_type: DiscountType = DiscountType.PERCENTAGE
    unit: Optional[ProductUnit] = None
    gst_rate: Optional[Decimal] = None


class PurchaseOrderBase(BaseModel):
    principal_id: Optional[int] = None
    po_date: Optional[date] = None
    bill_to: AddressBlock = AddressBlock()
    ship_to: AddressBlock = AddressBlock()
    additional_discount: AdjustmentIn = AdjustmentIn()
    tax_type: TaxType = TaxType.IGST
    gst_rate: Decimal = Decimal(5)
    shipping_charges: AdjustmentIn = AdjustmentIn(type=DiscountType.AMOUNT)
    to_emails: List[str] = []
    cc_emails: List[str] = []
    from_email: Optional[str] = None
    terms: Optional[str] = None
    notes: Optional[str] = None


class PurchaseOrderCreate(PurchaseOrderBase):
    products: List[PurchaseOrderItemIn] = []


class PurchaseOrderUpdate(BaseModel):
    principal_id: Optional[int] = None
    po_date: Optional[date] = None
    bill_to: Optional[AddressBlock] = None
    ship_to: Optional[AddressBlock] = None
    additional_discount: Optional[AdjustmentIn] = None
    tax_type: Optional[TaxType] = None
    gst_rate: Optional[Decimal] = None
    shipping_charges: Optional[AdjustmentIn] = None
    to_emails: Optional[List[str]] = None
    cc_emails: Optional[List[str]] = None
    from_email: Optional[str] = None
    terms: Optional[str] = None
    notes: Optional[str] = None
    # Replaces every line when present
    products: Optional[List[PurchaseOrderItemIn]] = None


class PurchaseOrderItem(BaseModel):
    id: int
    product_id: int
    product_code: Optional[str] = None
    product_name: str
    quantity: int
    foc: int
    unit_price: Decimal
    discount: Decimal
    discount_type: DiscountType
    discount_amount: Decimal
    total_cost: Decimal
    unit: ProductUnit
    gst_rate: Decimal
    received_qty: int
    backlog_qty: int

    class Config:
        from_attributes = True


class PurchaseOrderHistory(BaseModel):
    id: int
    stage: Stage
    action: str
    action_by: str
    action_date: Optional[datetime] = None
    remarks: Optional[str] = None
    changes: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True


class PurchaseOrderSummary(BaseModel):
    id: int
    po_number: str
    po_date: date
    principal_id: int
    principal_name: Optional[str] = None
    bill_to_name: Optional[str] = None
    status: POStatus
    current_stage: Stage
    grand_total: Decimal
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PurchaseOrder(PurchaseOrderSummary):
    bill_to: AddressBlock
    ship_to: AddressBlock
    additional_discount_type: DiscountType
    additional_discount_value: Decimal
    tax_type: TaxType
    gst_rate: Decimal
    shipping_type: DiscountType
    shipping_value: Decimal
    sub_total: Decimal
    product_level_discount: Decimal
    additional_discount: Decimal
    total_after_discount: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    gst_amount: Decimal
    shipping_amount: Decimal
    to_emails: List[str] = []
    cc_emails: List[str] = []
    from_email: Optional[str] = None
    terms: Optional[str] = None
    notes: Optional[str] = None
    approved_by: Optional[str] = None
    approved_date: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[PurchaseOrderItem] = []
    history: List[PurchaseOrderHistory] = []


class WorkflowActionRequest(BaseModel):
    action: str
    remarks: Optional[str] = None


class WorkflowActionCheck(BaseModel):
    is_valid: bool
    current_stage: Stage
    next_stage: Optional[Stage] = None
    required_permission: Optional[str] = None
    message: str


class BacklogLine(BaseModel):
    product_id: int
    product_name: str
    ordered_qty: int
    received_qty: int
    backlog_qty: int


class TotalsPreview(BaseModel):
    sub_total: Decimal
    product_level_discount: Decimal
    additional_discount: Decimal
    total_after_discount: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    gst_amount: Decimal
    shipping_amount: Decimal
    grand_total: Decimal
    line_totals: List[Decimal] = []
