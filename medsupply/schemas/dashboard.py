from pydantic import BaseModel
from typing import Dict, Optional
from decimal import Decimal
from medsupply.schemas.inventory import AlertCounts, StockTotals
from medsupply.schemas.quality_control import QCDashboard
from medsupply.schemas.warehouse_approvals import WarehouseDashboard


class PurchaseOrderSection(BaseModel):
    total: int
    by_status: Dict[str, int] = {}
    pending_approval: int
    open_value: Decimal


class InvoiceReceivingSection(BaseModel):
    total: int
    by_status: Dict[str, int] = {}
    drafts: int
    awaiting_qc: int


class InventorySection(BaseModel):
    overview: StockTotals
    alerts: AlertCounts


class Dashboard(BaseModel):
    purchase_orders: Optional[PurchaseOrderSection] = None
    invoice_receiving: Optional[InvoiceReceivingSection] = None
    quality_control: Optional[QCDashboard] = None
    warehouse_approval: Optional[WarehouseDashboard] = None
    inventory: Optional[InventorySection] = None
