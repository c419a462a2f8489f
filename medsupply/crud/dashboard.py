"""Home-screen summary; each section appears only for users who can open that module."""
from datetime import date
from typing import Optional
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from medsupply.crud import inventory as crud_inventory
from medsupply.crud import quality_control as crud_qc
from medsupply.crud import warehouse_approvals as crud_wa
from medsupply.models.invoice_receivings import InvoiceReceiving, ReceivingStatus
from medsupply.models.purchase_orders import PurchaseOrder
from medsupply.utils.access import UserContext, can_access_module
from medsupply.utils.money import from_paise
from medsupply.utils.workflow_table import POStatus

logger = logging.getLogger("dashboard")

CLOSED_ORDERS = (POStatus.COMPLETED, POStatus.CANCELLED, POStatus.REJECTED)


def _grouped(db: Session, column, key_column) -> dict:
    rows = db.query(column, func.count(key_column)).group_by(column).all()
    return {getattr(k, "value", k): v for k, v in rows}


def purchase_order_section(db: Session) -> dict:
    by_status = _grouped(db, PurchaseOrder.status, PurchaseOrder.id)
    open_value = (
        db.query(func.coalesce(func.sum(PurchaseOrder.grand_total_paise), 0))
        .filter(PurchaseOrder.status.notin_(CLOSED_ORDERS))
        .scalar()
    )
    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "pending_approval": by_status.get(POStatus.PENDING_APPROVAL.value, 0),
        "open_value": from_paise(open_value),
    }


def invoice_receiving_section(db: Session) -> dict:
    by_status = _grouped(db, InvoiceReceiving.status, InvoiceReceiving.id)
    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "drafts": by_status.get(ReceivingStatus.DRAFT.value, 0),
        "awaiting_qc": by_status.get(ReceivingStatus.SUBMITTED.value, 0),
    }


def build(db: Session, user: UserContext, near_expiry_days: int, days: int = 30,
          today: Optional[date] = None) -> dict:
    sections = {}
    if can_access_module(user.permissions, "purchase_orders"):
        sections["purchase_orders"] = purchase_order_section(db)
    if can_access_module(user.permissions, "invoice_receiving"):
        sections["invoice_receiving"] = invoice_receiving_section(db)
    if can_access_module(user.permissions, "quality_control"):
        sections["quality_control"] = crud_qc.dashboard(db)
    if can_access_module(user.permissions, "warehouse_approval"):
        sections["warehouse_approval"] = crud_wa.dashboard(db, days)
    if can_access_module(user.permissions, "inventory"):
        stats = crud_inventory.inventory_statistics(db, near_expiry_days, today=today)
        sections["inventory"] = {"overview": stats["overview"], "alerts": stats["alerts"]}
    logger.debug(f"Dashboard for {user.username}: {sorted(sections)}")
    return sections
