from collections import Counter
from typing import Optional
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from medsupply.crud import assignments
from medsupply.crud import purchase_orders as crud_po
from medsupply.crud import warehouse_approvals as crud_wa
from medsupply.crud.audit_log import create_audit_log
from medsupply.models.audit_mixin import now_local
from medsupply.models.invoice_receivings import InvoiceReceiving, ReceivedLineStatus, ReceivingStatus
from medsupply.models.quality_control import (
    ApprovalStatus,
    QCItem,
    QCItemStatus,
    QCProduct,
    QCProductStatus,
    QCResult,
    QCStatus,
    QualityControl,
)
from medsupply.schemas.audit_log import AuditLogCreate
from medsupply.utils import sqlalchemy_to_dict
from medsupply.utils.access import UserContext
from medsupply.utils.errors import FieldError, ValidationFailed, WorkflowActionError
from medsupply.utils.numbering import next_document_number
from medsupply.utils.workflow_table import Action

logger = logging.getLogger("quality_control")

EDITABLE = (QCStatus.PENDING, QCStatus.IN_PROGRESS)


def get_quality_control(db: Session, qc_id: int) -> Optional[QualityControl]:
    return (
        db.query(QualityControl)
        .options(selectinload(QualityControl.products).selectinload(QCProduct.items))
        .filter(QualityControl.id == qc_id)
        .first()
    )


def query_quality_controls(db: Session, status=None, overall_result=None, priority=None,
                           purchase_order_id: Optional[int] = None, assigned_to: Optional[str] = None,
                           search: Optional[str] = None):
    query = db.query(QualityControl)
    if status:
        query = query.filter(QualityControl.status == status)
    if overall_result:
        query = query.filter(QualityControl.overall_result == overall_result)
    if priority:
        query = query.filter(QualityControl.priority == priority)
    if purchase_order_id:
        query = query.filter(QualityControl.purchase_order_id == purchase_order_id)
    if assigned_to:
        query = query.filter(QualityControl.assigned_to == assigned_to)
    if search:
        query = query.filter(QualityControl.qc_number.ilike(f"%{search.strip()}%"))
    return query.order_by(QualityControl.id.desc())


def create_from_receiving(db: Session, qc_in, user: UserContext) -> QualityControl:
    """Open an inspection with one item per unit received on the invoice."""
    receiving = db.query(InvoiceReceiving).filter(InvoiceReceiving.id == qc_in.invoice_receiving_id).first()
    if receiving is None:
        raise ValidationFailed([FieldError("invoice_receiving_id", "Invoice receiving not found")])
    existing = db.query(QualityControl).filter(QualityControl.invoice_receiving_id == receiving.id).first()
    if existing is not None:
        raise WorkflowActionError(f"Quality control {existing.qc_number} already exists for this receiving", 409)
    if receiving.status != ReceivingStatus.SUBMITTED:
        raise WorkflowActionError(f"Invoice receiving is {receiving.status.value}; only submitted receipts go to quality control", 409)

    qc = QualityControl(
        qc_number=next_document_number(db, QualityControl.qc_number, "QC"),
        invoice_receiving_id=receiving.id,
        purchase_order_id=receiving.purchase_order_id,
        status=QCStatus.PENDING,
        qc_type=qc_in.qc_type,
        priority=qc_in.priority,
        overall_result=QCResult.PENDING,
        approval_status=ApprovalStatus.PENDING,
        assigned_to=qc_in.assigned_to,
        temperature=qc_in.temperature,
        humidity=qc_in.humidity,
        light_condition=qc_in.light_condition,
        created_by=user.username,
    )
    for line in receiving.items:
        if line.status != ReceivedLineStatus.RECEIVED or line.received_qty <= 0:
            continue
        qc_product = QCProduct(
            invoice_receiving_item_id=line.id,
            product_id=line.product_id,
            product_name=line.product_name,
            batch_no=line.batch_no,
            mfg_date=line.mfg_date,
            exp_date=line.exp_date,
            received_qty=line.received_qty,
            qc_qty=line.received_qty,
            passed_qty=0,
            failed_qty=0,
            overall_status=QCProductStatus.PENDING,
            reason_summary={},
        )
        qc_product.items = [
            QCItem(item_number=number, status=QCItemStatus.PENDING, reasons=[])
            for number in range(1, line.received_qty + 1)
        ]
        qc.products.append(qc_product)
    if not qc.products:
        raise ValidationFailed([FieldError("invoice_receiving_id", "Invoice receiving has no received products")])

    db.add(qc)
    receiving.status = ReceivingStatus.QC_PENDING
    receiving.qc_status = "in_progress"
    db.flush()

    db_po = crud_po.get_purchase_order(db, qc.purchase_order_id)
    crud_po.advance_if_listed(db, db_po, Action.QC_CHECK, user, remarks=f"Quality control {qc.qc_number} opened",
                              changes={"quality_control_id": qc.id})
    logger.info(f"Quality control {qc.qc_number} created for invoice {receiving.invoice_number} by user {user.username}")
    return qc


def summarize_product(qc_product: QCProduct) -> QCProduct:
    statuses = [QCItemStatus(item.status) for item in qc_product.items]
    passed = statuses.count(QCItemStatus.PASSED)
    failed = statuses.count(QCItemStatus.FAILED)
    pending = len(statuses) - passed - failed
    qc_product.passed_qty = passed
    qc_product.failed_qty = failed
    if pending == len(statuses):
        qc_product.overall_status = QCProductStatus.PENDING
    elif pending:
        qc_product.overall_status = QCProductStatus.IN_PROGRESS
    elif not failed:
        qc_product.overall_status = QCProductStatus.PASSED
    elif not passed:
        qc_product.overall_status = QCProductStatus.FAILED
    else:
        qc_product.overall_status = QCProductStatus.PARTIAL_PASS
    reasons = Counter(reason for item in qc_product.items for reason in (item.reasons or []))
    qc_product.reason_summary = dict(reasons)
    return qc_product


def overall_result(qc: QualityControl) -> QCResult:
    statuses = [QCProductStatus(p.overall_status) for p in qc.products]
    if not statuses or any(s in (QCProductStatus.PENDING, QCProductStatus.IN_PROGRESS) for s in statuses):
        return QCResult.PENDING
    if all(s == QCProductStatus.PASSED for s in statuses):
        return QCResult.PASSED
    if all(s == QCProductStatus.FAILED for s in statuses):
        return QCResult.FAILED
    return QCResult.PARTIAL_PASS


def _mark_item(item: QCItem, update, user: UserContext) -> None:
    item.status = update.status
    item.reasons = [getattr(reason, "value", reason) for reason in update.reasons]
    item.remarks = update.remarks
    item.qc_by = user.username
    item.qc_date = now_local()


def _check_editable(qc: QualityControl) -> None:
    if qc.status not in EDITABLE:
        raise WorkflowActionError(f"Quality control is {qc.status.value} and cannot be changed", 409)


def _check_reasons(update) -> None:
    if update.status == QCItemStatus.FAILED and not update.reasons:
        raise ValidationFailed([FieldError("reasons", "At least one reason is required for a failed item")])


def _touch(qc: QualityControl, user: UserContext) -> None:
    if qc.status == QCStatus.PENDING:
        qc.status = QCStatus.IN_PROGRESS
    qc.overall_result = overall_result(qc)
    qc.updated_by = user.username


def update_item(db: Session, qc: QualityControl, item_id: int, update, user: UserContext) -> QualityControl:
    _check_editable(qc)
    _check_reasons(update)
    for qc_product in qc.products:
        for item in qc_product.items:
            if item.id == item_id:
                _mark_item(item, update, user)
                summarize_product(qc_product)
                _touch(qc, user)
                db.flush()
                return qc
    raise LookupError(f"QC item {item_id} not found")


def bulk_update_items(db: Session, qc: QualityControl, qc_product_id: int, update, user: UserContext) -> QualityControl:
    _check_editable(qc)
    _check_reasons(update)
    qc_product = next((p for p in qc.products if p.id == qc_product_id), None)
    if qc_product is None:
        raise LookupError(f"QC product {qc_product_id} not found")
    wanted = set(update.item_ids) if update.item_ids is not None else None
    for item in qc_product.items:
        if wanted is None and item.status != QCItemStatus.PENDING:
            continue
        if wanted is not None and item.id not in wanted:
            continue
        _mark_item(item, update, user)
    summarize_product(qc_product)
    _touch(qc, user)
    db.flush()
    return qc


def submit(db: Session, qc: QualityControl, user: UserContext, remarks: Optional[str] = None) -> QualityControl:
    if qc.status != QCStatus.IN_PROGRESS:
        raise WorkflowActionError("Only quality checks in progress can be submitted", 409)
    pending = sum(
        1 for p in qc.products for item in p.items if QCItemStatus(item.status) == QCItemStatus.PENDING
    )
    if pending:
        raise ValidationFailed([FieldError("products", f"{pending} item(s) are still pending inspection")])
    qc.status = QCStatus.PENDING_APPROVAL
    qc.overall_result = overall_result(qc)
    qc.qc_by = user.username
    qc.qc_date = now_local()
    qc.qc_remarks = remarks
    qc.submitted_at = now_local()
    qc.updated_by = user.username
    db.flush()
    logger.info(f"Quality control {qc.qc_number} submitted ({qc.overall_result.value}) by user {user.username}")
    return qc


def approve(db: Session, qc: QualityControl, user: UserContext, remarks: Optional[str] = None,
            warehouse_id: Optional[int] = None):
    """Accept the inspection; passed stock moves on to warehouse approval."""
    if qc.status != QCStatus.PENDING_APPROVAL:
        raise WorkflowActionError("Quality control is not awaiting approval", 409)
    result = overall_result(qc)
    warehouse = crud_wa.resolve_warehouse(db, warehouse_id) if result != QCResult.FAILED else None

    old_values = sqlalchemy_to_dict(qc)
    qc.status = QCStatus.COMPLETED
    qc.approval_status = ApprovalStatus.APPROVED
    qc.approved_by = user.username
    qc.approval_date = now_local()
    qc.approved_at = qc.approval_date
    qc.approval_remarks = remarks
    qc.updated_by = user.username
    qc.invoice_receiving.status = ReceivingStatus.COMPLETED
    qc.invoice_receiving.qc_status = result.value
    db.flush()

    approval = crud_wa.create_from_quality_control(db, qc, warehouse, user) if warehouse else None

    db_po = crud_po.get_purchase_order(db, qc.purchase_order_id)
    changes = {"quality_control_id": qc.id, "qc_result": result.value}
    if result == QCResult.FAILED:
        crud_po.advance_if_listed(db, db_po, Action.REJECT, user,
                                  remarks=remarks or f"Quality control {qc.qc_number} failed", changes=changes)
    else:
        crud_po.advance_if_listed(db, db_po, Action.APPROVE, user,
                                  remarks=remarks or f"Quality control {qc.qc_number} approved", changes=changes)

    create_audit_log(db, AuditLogCreate(
        table_name="quality_control",
        record_id=qc.id,
        changed_by=user.username,
        action="APPROVE",
        old_values=old_values,
        new_values=sqlalchemy_to_dict(qc),
    ))
    logger.info(f"Quality control {qc.qc_number} approved by user {user.username}")
    return qc, approval


def reject(db: Session, qc: QualityControl, user: UserContext, remarks: Optional[str]) -> QualityControl:
    if qc.status != QCStatus.PENDING_APPROVAL:
        raise WorkflowActionError("Quality control is not awaiting approval", 409)
    if not (remarks or "").strip():
        raise ValidationFailed([FieldError("remarks", "Remarks are required to reject")])
    old_values = sqlalchemy_to_dict(qc)
    qc.status = QCStatus.REJECTED
    qc.approval_status = ApprovalStatus.REJECTED
    qc.approved_by = user.username
    qc.approval_date = now_local()
    qc.rejected_at = qc.approval_date
    qc.approval_remarks = remarks
    qc.updated_by = user.username
    qc.invoice_receiving.status = ReceivingStatus.REJECTED
    qc.invoice_receiving.qc_status = "rejected"
    db.flush()

    db_po = crud_po.get_purchase_order(db, qc.purchase_order_id)
    crud_po.advance_if_listed(db, db_po, Action.REJECT, user, remarks=remarks,
                              changes={"quality_control_id": qc.id})
    create_audit_log(db, AuditLogCreate(
        table_name="quality_control",
        record_id=qc.id,
        changed_by=user.username,
        action="REJECT",
        old_values=old_values,
        new_values=sqlalchemy_to_dict(qc),
    ))
    logger.info(f"Quality control {qc.qc_number} rejected by user {user.username}")
    return qc


def dashboard(db: Session) -> dict:
    by_status = dict(db.query(QualityControl.status, func.count(QualityControl.id)).group_by(QualityControl.status).all())
    by_result = dict(
        db.query(QualityControl.overall_result, func.count(QualityControl.id)).group_by(QualityControl.overall_result).all()
    )
    return {
        "total": sum(by_status.values()),
        "by_status": {getattr(k, "value", k): v for k, v in by_status.items()},
        "by_result": {getattr(k, "value", k): v for k, v in by_result.items()},
        "pending_approval": by_status.get(QCStatus.PENDING_APPROVAL, 0),
    }


def bulk_assign(db: Session, ids, assigned_to: str, user: UserContext, priority=None) -> dict:
    return assignments.bulk_assign(db, QualityControl, EDITABLE, ids, assigned_to, user, priority)


def workload(db: Session, include_closed: bool = False):
    return assignments.workload(db, QualityControl, EDITABLE, QCStatus.PENDING, QCStatus.IN_PROGRESS, include_closed)


def statistics(db: Session, date_from=None, date_to=None) -> dict:
    """Turnaround runs from creation to the inspector's submission."""
    return assignments.statistics(db, QualityControl, "qc_date", QCStatus.COMPLETED, date_from, date_to,
                                  type_column="qc_type")
