from datetime import timedelta
from typing import Optional
import logging

from sqlalchemy.orm import Session, selectinload

from medsupply.crud import assignments
from medsupply.crud import inventory as crud_inventory
from medsupply.crud.audit_log import create_audit_log
from medsupply.models.audit_mixin import now_local, to_local
from medsupply.models.invoice_receivings import InvoiceReceivingItem
from medsupply.models.quality_control import QCProductStatus, QualityControl
from medsupply.models.warehouse_approvals import (
    ManagerApproval,
    WarehouseApproval,
    WarehouseApprovalProduct,
    WarehouseApprovalStatus,
    WarehouseProductStatus,
    WarehouseResult,
)
from medsupply.models.warehouses import Warehouse, WarehouseStatus
from medsupply.schemas.audit_log import AuditLogCreate
from medsupply.utils import sqlalchemy_to_dict
from medsupply.utils.access import UserContext
from medsupply.utils.errors import FieldError, ValidationFailed, WorkflowActionError
from medsupply.utils.numbering import next_document_number

logger = logging.getLogger("warehouse_approval")

EDITABLE = (WarehouseApprovalStatus.PENDING, WarehouseApprovalStatus.IN_PROGRESS)
DECIDED = (WarehouseProductStatus.APPROVED, WarehouseProductStatus.REJECTED, WarehouseProductStatus.PARTIAL_APPROVED)


def get_warehouse_approval(db: Session, approval_id: int) -> Optional[WarehouseApproval]:
    return (
        db.query(WarehouseApproval)
        .options(
            selectinload(WarehouseApproval.products),
            selectinload(WarehouseApproval.manager_approvals),
        )
        .filter(WarehouseApproval.id == approval_id)
        .first()
    )


def query_warehouse_approvals(db: Session, status=None, warehouse_id: Optional[int] = None,
                              purchase_order_id: Optional[int] = None, search: Optional[str] = None):
    query = db.query(WarehouseApproval)
    if status:
        query = query.filter(WarehouseApproval.status == status)
    if warehouse_id:
        query = query.filter(WarehouseApproval.warehouse_id == warehouse_id)
    if purchase_order_id:
        query = query.filter(WarehouseApproval.purchase_order_id == purchase_order_id)
    if search:
        query = query.filter(WarehouseApproval.approval_number.ilike(f"%{search.strip()}%"))
    return query.order_by(WarehouseApproval.id.desc())


def resolve_warehouse(db: Session, warehouse_id: Optional[int]) -> Warehouse:
    query = db.query(Warehouse).filter(Warehouse.status == WarehouseStatus.ACTIVE)
    if warehouse_id:
        warehouse = query.filter(Warehouse.id == warehouse_id).first()
    else:
        warehouse = query.filter(Warehouse.is_default == True).first()
    if warehouse is None:
        raise ValidationFailed([FieldError(
            "warehouse_id",
            "Warehouse not found or inactive" if warehouse_id else "No warehouse given and no default warehouse configured",
        )])
    return warehouse


def create_from_quality_control(db: Session, qc: QualityControl, warehouse: Warehouse,
                                user: UserContext) -> Optional[WarehouseApproval]:
    """Open a storage approval for everything that passed QC; None when nothing passed."""
    passed = [
        p for p in qc.products
        if p.overall_status in (QCProductStatus.PASSED, QCProductStatus.PARTIAL_PASS) and p.passed_qty > 0
    ]
    if not passed:
        return None
    approval = WarehouseApproval(
        approval_number=next_document_number(db, WarehouseApproval.approval_number, "WA"),
        quality_control_id=qc.id,
        invoice_receiving_id=qc.invoice_receiving_id,
        purchase_order_id=qc.purchase_order_id,
        warehouse_id=warehouse.id,
        status=WarehouseApprovalStatus.PENDING,
        priority=qc.priority,
        overall_result=WarehouseResult.PENDING,
        created_by=user.username,
    )
    for qc_product in passed:
        receiving_item = (
            db.query(InvoiceReceivingItem).filter(InvoiceReceivingItem.id == qc_product.invoice_receiving_item_id).first()
            if qc_product.invoice_receiving_item_id else None
        )
        approval.products.append(WarehouseApprovalProduct(
            qc_product_id=qc_product.id,
            product_id=qc_product.product_id,
            product_name=qc_product.product_name,
            batch_no=qc_product.batch_no,
            mfg_date=qc_product.mfg_date,
            exp_date=qc_product.exp_date,
            qc_passed_qty=qc_product.passed_qty,
            unit_cost_paise=receiving_item.unit_price_paise if receiving_item else 0,
            status=WarehouseProductStatus.PENDING,
        ))
    db.add(approval)
    db.flush()
    logger.info(f"Warehouse approval {approval.approval_number} opened from QC {qc.qc_number}")
    return approval


def _overall_result(approval: WarehouseApproval) -> WarehouseResult:
    statuses = [WarehouseProductStatus(p.status) for p in approval.products]
    if not statuses or any(s not in DECIDED for s in statuses):
        return WarehouseResult.PENDING
    if all(s == WarehouseProductStatus.APPROVED for s in statuses):
        return WarehouseResult.APPROVED
    if all(s == WarehouseProductStatus.REJECTED for s in statuses):
        return WarehouseResult.REJECTED
    return WarehouseResult.PARTIAL_APPROVED


def update_approval(db: Session, approval: WarehouseApproval, update, user: UserContext) -> WarehouseApproval:
    if approval.status not in EDITABLE:
        raise WorkflowActionError(f"Warehouse approval is {approval.status.value} and cannot be changed", 409)
    for key, value in update.model_dump(exclude_unset=True).items():
        setattr(approval, key, value)
    approval.updated_by = user.username
    db.flush()
    return approval


def decide_product(db: Session, approval: WarehouseApproval, product: WarehouseApprovalProduct, decision,
                   user: UserContext) -> WarehouseApproval:
    if approval.status not in EDITABLE:
        raise WorkflowActionError(f"Warehouse approval is {approval.status.value} and cannot be changed", 409)

    errors = []
    status = WarehouseProductStatus(decision.status)
    if status == WarehouseProductStatus.APPROVED:
        approved = product.qc_passed_qty
    elif status == WarehouseProductStatus.PARTIAL_APPROVED:
        approved = decision.approved_qty
        if approved is None or not (0 < approved < product.qc_passed_qty):
            errors.append(FieldError(
                "approved_qty", f"Partial approval needs a quantity between 1 and {product.qc_passed_qty - 1}"
            ))
    else:
        approved = 0
    if status in (WarehouseProductStatus.APPROVED, WarehouseProductStatus.PARTIAL_APPROVED) and not decision.zone:
        errors.append(FieldError("zone", "Storage zone is required for approved products"))
    if status in (WarehouseProductStatus.REJECTED, WarehouseProductStatus.PARTIAL_APPROVED) \
            and not (decision.rejection_reason or "").strip():
        errors.append(FieldError("rejection_reason", "Rejection reason is required"))
    if errors:
        raise ValidationFailed(errors)

    product.status = status
    if status != WarehouseProductStatus.ON_HOLD:
        product.approved_qty = approved
        product.rejected_qty = product.qc_passed_qty - approved
    for key in ("zone", "rack", "shelf", "bin", "rejection_reason", "remarks"):
        value = getattr(decision, key)
        if value is not None:
            setattr(product, key, value)
    product.inspected_by = user.username
    product.inspected_at = now_local()

    if approval.status == WarehouseApprovalStatus.PENDING:
        approval.status = WarehouseApprovalStatus.IN_PROGRESS
    approval.overall_result = _overall_result(approval)
    approval.updated_by = user.username
    db.flush()
    logger.info(
        f"Warehouse approval {approval.approval_number}: product {product.product_id} marked "
        f"{status.value} by user {user.username}"
    )
    return approval


def submit_approval(db: Session, approval: WarehouseApproval, user: UserContext,
                    remarks: Optional[str] = None) -> WarehouseApproval:
    if approval.status not in EDITABLE:
        raise WorkflowActionError(f"Warehouse approval is {approval.status.value} and cannot be submitted", 409)
    undecided = [p.product_name for p in approval.products if WarehouseProductStatus(p.status) not in DECIDED]
    if undecided:
        raise ValidationFailed([FieldError("products", f"Undecided products: {', '.join(undecided)}")])
    approval.status = WarehouseApprovalStatus.PENDING_MANAGER_APPROVAL
    approval.overall_result = _overall_result(approval)
    approval.submitted_by = user.username
    approval.submitted_at = now_local()
    if remarks:
        approval.remarks = remarks
    db.flush()
    return approval


def manager_decision(db: Session, approval: WarehouseApproval, decision, user: UserContext) -> WarehouseApproval:
    if approval.status != WarehouseApprovalStatus.PENDING_MANAGER_APPROVAL:
        raise WorkflowActionError("Warehouse approval is not awaiting manager approval", 409)
    if decision.action == "reject" and not (decision.remarks or "").strip():
        raise ValidationFailed([FieldError("remarks", "Remarks are required to reject")])

    old_values = sqlalchemy_to_dict(approval)
    approval.manager_approvals.append(ManagerApproval(
        level=len(approval.manager_approvals) + 1,
        action=decision.action,
        remarks=decision.remarks,
        approved_by=user.username,
        approved_at=now_local(),
    ))
    if decision.action == "approve":
        approval.status = WarehouseApprovalStatus.COMPLETED
        approval.completed_at = now_local()
        for product in approval.products:
            if product.approved_qty <= 0:
                continue
            crud_inventory.receive_stock(
                db, user,
                product_id=product.product_id,
                warehouse_id=approval.warehouse_id,
                quantity=product.approved_qty,
                batch_no=product.batch_no,
                mfg_date=product.mfg_date,
                exp_date=product.exp_date,
                location={"zone": product.zone, "rack": product.rack, "shelf": product.shelf, "bin": product.bin},
                unit_cost_paise=product.unit_cost_paise,
                reference_type="warehouse_approval",
                reference_id=approval.id,
                reference_number=approval.approval_number,
                links={
                    "purchase_order_id": approval.purchase_order_id,
                    "quality_control_id": approval.quality_control_id,
                    "warehouse_approval_id": approval.id,
                },
            )
        approval.inventory_status = "completed"
    else:
        approval.status = WarehouseApprovalStatus.REJECTED
        approval.inventory_status = "skipped"
    approval.updated_by = user.username
    db.flush()
    create_audit_log(db, AuditLogCreate(
        table_name="warehouse_approvals",
        record_id=approval.id,
        changed_by=user.username,
        action=f"MANAGER_{decision.action.upper()}",
        old_values=old_values,
        new_values=sqlalchemy_to_dict(approval),
    ))
    logger.info(f"Warehouse approval {approval.approval_number} {decision.action}d by manager {user.username}")
    return approval


def bulk_assign(db: Session, ids, assigned_to: str, user: UserContext, priority=None) -> dict:
    return assignments.bulk_assign(db, WarehouseApproval, EDITABLE, ids, assigned_to, user, priority)


def workload(db: Session, include_closed: bool = False):
    return assignments.workload(db, WarehouseApproval, EDITABLE, WarehouseApprovalStatus.PENDING,
                                WarehouseApprovalStatus.IN_PROGRESS, include_closed)


def statistics(db: Session, date_from=None, date_to=None) -> dict:
    return assignments.statistics(db, WarehouseApproval, "completed_at", WarehouseApprovalStatus.COMPLETED,
                                  date_from, date_to)


def dashboard(db: Session, days: int = 30, recent: int = 10) -> dict:
    """Approvals opened in the last ``days`` days, their product quantities and the latest activity."""
    since = now_local() - timedelta(days=days)
    approvals = [
        a for a in db.query(WarehouseApproval).options(selectinload(WarehouseApproval.products))
        .order_by(WarehouseApproval.id.desc()).all()
        if a.created_at is not None and to_local(a.created_at) >= since
    ]
    by_status = {}
    for approval in approvals:
        by_status[approval.status.value] = by_status.get(approval.status.value, 0) + 1
    lines = [p for a in approvals for p in a.products]
    return {
        "days": days,
        "total": len(approvals),
        "by_status": by_status,
        "open": sum(1 for a in approvals if a.status in EDITABLE),
        "awaiting_manager": by_status.get(WarehouseApprovalStatus.PENDING_MANAGER_APPROVAL.value, 0),
        "products": {
            "lines": len(lines),
            "qc_passed_qty": sum(p.qc_passed_qty for p in lines),
            "approved_qty": sum(p.approved_qty for p in lines),
            "rejected_qty": sum(p.rejected_qty for p in lines),
        },
        "recent": approvals[:recent],
    }
