from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from medsupply.models.inventory import MovementType, StockStatus


class InventoryItem(BaseModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    warehouse_id: int
    batch_no: Optional[str] = None
    mfg_date: Optional[date] = None
    exp_date: Optional[date] = None
    zone: Optional[str] = None
    rack: Optional[str] = None
    shelf: Optional[str] = None
    bin: Optional[str] = None
    current_stock: int
    reserved_stock: int
    available_stock: int
    minimum_stock: int
    maximum_stock: Optional[int] = None
    stock_status: StockStatus
    unit_cost: Decimal
    total_value: Decimal
    purchase_order_id: Optional[int] = None
    quality_control_id: Optional[int] = None
    warehouse_approval_id: Optional[int] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StockMovement(BaseModel):
    id: int
    movement_type: MovementType
    quantity: int
    balance_after: int
    reason: Optional[str] = None
    remarks: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    reference_number: Optional[str] = None
    hospital_id: Optional[int] = None
    doctor_id: Optional[int] = None
    patient_name: Optional[str] = None
    case_number: Optional[str] = None
    movement_by: str
    movement_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class StockAdjustment(BaseModel):
    # Signed: positive adds stock, negative removes it
    quantity: int
    reason: str = Field(..., min_length=1)
    remarks: Optional[str] = None
    movement_type: Optional[MovementType] = None


class StockReservation(BaseModel):
    quantity: int = Field(..., gt=0)
    reference_number: Optional[str] = None


class StockRelease(BaseModel):
    quantity: int = Field(..., gt=0)


class StockTransfer(BaseModel):
    quantity: int = Field(..., gt=0)
    warehouse_id: int
    zone: Optional[str] = None
    rack: Optional[str] = None
    shelf: Optional[str] = None
    bin: Optional[str] = None
    remarks: Optional[str] = None


class InventoryLimits(BaseModel):
    minimum_stock: Optional[int] = Field(None, ge=0)
    maximum_stock: Optional[int] = Field(None, ge=0)
    stock_status: Optional[StockStatus] = None


class InventoryAlerts(BaseModel):
    low_stock: List[InventoryItem] = []
    near_expiry: List[InventoryItem] = []
    expired: List[InventoryItem] = []


class StockUtilization(BaseModel):
    quantity: int = Field(..., gt=0)
    hospital_id: Optional[int] = None
    doctor_id: Optional[int] = None
    patient_name: Optional[str] = None
    case_number: Optional[str] = None
    reason: Optional[str] = None
    remarks: Optional[str] = None


class StockTotals(BaseModel):
    lots: int
    stock: int
    value: Decimal


class StatusStock(StockTotals):
    status: StockStatus


class ProductStock(StockTotals):
    product_id: int
    product_name: Optional[str] = None


class WarehouseStock(StockTotals):
    warehouse_id: int
    warehouse_name: Optional[str] = None


class AlertCounts(BaseModel):
    low_stock: int
    near_expiry: int
    expired: int


class InventoryStatistics(BaseModel):
    overview: StockTotals
    by_status: List[StatusStock] = []
    alerts: AlertCounts
    top_products: List[ProductStock] = []
    by_warehouse: List[WarehouseStock] = []


class ValueSplit(StockTotals):
    available_value: Decimal
    reserved_value: Decimal


class WarehouseValuation(ValueSplit):
    warehouse_id: int
    warehouse_name: Optional[str] = None


class CategoryValuation(StockTotals):
    category_id: Optional[int] = None
    category_name: str


class InventoryValuation(BaseModel):
    totals: ValueSplit
    by_warehouse: List[WarehouseValuation] = []
    by_category: List[CategoryValuation] = []
