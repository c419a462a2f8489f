from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from medsupply.models.invoice_receivings import ReceivedLineStatus, ReceivingStatus


class InvoiceReceivingItemIn(BaseModel):
    product_id: int
    received_qty: int = Field(..., ge=0)
    foc: int = Field(0, ge=0)
    unit_price: Optional[Decimal] = Field(None, ge=0)
    batch_no: Optional[str] = None
    mfg_date: Optional[date] = None
    exp_date: Optional[date] = None
    status: ReceivedLineStatus = ReceivedLineStatus.RECEIVED
    remarks: Optional[str] = None


class InvoiceReceivingCreate(BaseModel):
    purchase_order_id: int
    invoice_number: str = Field(..., min_length=1)
    invoice_date: date
    invoice_amount: Decimal = Field(Decimal(0), ge=0)
    received_date: Optional[date] = None
    notes: Optional[str] = None
    save_as_draft: bool = False
    products: List[InvoiceReceivingItemIn] = Field(..., min_length=1)


class InvoiceReceivingUpdate(BaseModel):
    invoice_number: Optional[str] = Field(None, min_length=1)
    invoice_date: Optional[date] = None
    invoice_amount: Optional[Decimal] = Field(None, ge=0)
    received_date: Optional[date] = None
    notes: Optional[str] = None
    products: Optional[List[InvoiceReceivingItemIn]] = Field(None, min_length=1)


class InvoiceReceivingItem(BaseModel):
    id: int
    product_id: int
    product_name: str
    ordered_qty: int
    received_qty: int
    foc: int
    unit_price: Decimal
    batch_no: Optional[str] = None
    mfg_date: Optional[date] = None
    exp_date: Optional[date] = None
    status: ReceivedLineStatus
    remarks: Optional[str] = None

    class Config:
        from_attributes = True


class InvoiceReceiving(BaseModel):
    id: int
    purchase_order_id: int
    invoice_number: str
    invoice_date: date
    invoice_amount: Decimal
    received_date: date
    received_by: str
    status: ReceivingStatus
    qc_status: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[InvoiceReceivingItem] = []

    class Config:
        from_attributes = True
