from datetime import date
from types import SimpleNamespace
from typing import Optional
import logging

from sqlalchemy.orm import Session, selectinload

from medsupply.crud import purchase_orders as crud_po
from medsupply.crud.audit_log import create_audit_log
from medsupply.crud.stage_permissions import effective_context
from medsupply.models.audit_mixin import now_local
from medsupply.models.invoice_receivings import (
    InvoiceReceiving,
    InvoiceReceivingItem,
    ReceivedLineStatus,
    ReceivingStatus,
)
from medsupply.models.purchase_orders import PurchaseOrder
from medsupply.schemas.audit_log import AuditLogCreate
from medsupply.schemas.invoice_receivings import InvoiceReceivingItemIn
from medsupply.utils import sqlalchemy_to_dict
from medsupply.utils.access import UserContext
from medsupply.utils.errors import FieldError, ValidationFailed, WorkflowActionError
from medsupply.utils.money import to_paise
from medsupply.utils.workflow_table import Action, Stage

logger = logging.getLogger("invoice_receiving")

RECEIVABLE_STAGES = (Stage.ORDERED, Stage.PARTIAL_RECEIVED)
HEADER_FIELDS = ("invoice_number", "invoice_date", "received_date", "notes")


def get_invoice_receiving(db: Session, receiving_id: int) -> Optional[InvoiceReceiving]:
    return (
        db.query(InvoiceReceiving)
        .options(selectinload(InvoiceReceiving.items))
        .filter(InvoiceReceiving.id == receiving_id)
        .first()
    )


def query_invoice_receivings(db: Session, purchase_order_id: Optional[int] = None, status=None,
                             search: Optional[str] = None):
    query = db.query(InvoiceReceiving).options(selectinload(InvoiceReceiving.items))
    if purchase_order_id:
        query = query.filter(InvoiceReceiving.purchase_order_id == purchase_order_id)
    if status:
        query = query.filter(InvoiceReceiving.status == status)
    if search:
        query = query.filter(InvoiceReceiving.invoice_number.ilike(f"%{search.strip()}%"))
    return query.order_by(InvoiceReceiving.id.desc())


def _receivable_po(db: Session, purchase_order_id: int) -> PurchaseOrder:
    db_po = crud_po.get_purchase_order(db, purchase_order_id)
    if db_po is None:
        raise ValidationFailed([FieldError("purchase_order_id", "Purchase order not found")])
    if Stage(db_po.current_stage) not in RECEIVABLE_STAGES:
        raise WorkflowActionError(
            f"Purchase order at stage {Stage(db_po.current_stage).value} cannot receive products",
            status_code=409,
        )
    return db_po


def _validate_lines(receiving_in, lines, db_po: PurchaseOrder, today: date):
    errors = []
    if receiving_in.invoice_date > today:
        errors.append(FieldError("invoice_date", "Invoice date cannot be in the future"))
    if receiving_in.received_date and receiving_in.received_date > today:
        errors.append(FieldError("received_date", "Received date cannot be in the future"))

    ordered = {}
    received = {}
    for item in db_po.items:
        ordered[item.product_id] = ordered.get(item.product_id, 0) + item.quantity
        received[item.product_id] = received.get(item.product_id, 0) + (item.received_qty or 0)

    incoming = {}
    for index, line in enumerate(lines):
        prefix = f"products[{index}]"
        if line.product_id not in ordered:
            errors.append(FieldError(f"{prefix}.product_id", "Product is not on this purchase order"))
            continue
        if line.mfg_date and line.exp_date and line.exp_date <= line.mfg_date:
            errors.append(FieldError(f"{prefix}.exp_date", "Expiry date must be after manufacturing date"))
        if line.mfg_date and line.mfg_date > today:
            errors.append(FieldError(f"{prefix}.mfg_date", "Manufacturing date cannot be in the future"))
        if line.status == ReceivedLineStatus.RECEIVED:
            incoming[line.product_id] = incoming.get(line.product_id, 0) + line.received_qty

    for product_id, qty in incoming.items():
        if received[product_id] + qty > ordered[product_id]:
            errors.append(FieldError(
                "products",
                f"Received quantity for product {product_id} exceeds ordered quantity "
                f"(ordered {ordered[product_id]}, already received {received[product_id]}, receiving {qty})",
            ))
    if errors:
        raise ValidationFailed(errors)
    return ordered


def _allocate(db_po: PurchaseOrder, product_id: int, qty: int) -> None:
    """Spread a received quantity over the order lines for one product."""
    for item in db_po.items:
        if qty <= 0:
            break
        if item.product_id != product_id:
            continue
        room = item.quantity - (item.received_qty or 0)
        take = min(room, qty)
        if take > 0:
            item.received_qty = (item.received_qty or 0) + take
            item.backlog_qty = item.quantity - item.received_qty
            qty -= take


def _build_lines(db_po: PurchaseOrder, lines, ordered: dict):
    prices = {item.product_id: item.unit_price_paise for item in db_po.items}
    names = {item.product_id: item.product_name for item in db_po.items}
    return [
        InvoiceReceivingItem(
            product_id=line.product_id,
            product_name=names[line.product_id],
            ordered_qty=ordered[line.product_id],
            received_qty=line.received_qty,
            foc=line.foc,
            unit_price_paise=to_paise(line.unit_price) if line.unit_price is not None else prices[line.product_id],
            batch_no=line.batch_no,
            mfg_date=line.mfg_date,
            exp_date=line.exp_date,
            status=line.status,
            remarks=line.remarks,
        )
        for line in lines
    ]


def _book_receipt(db: Session, db_receiving: InvoiceReceiving, db_po: PurchaseOrder, user: UserContext) -> int:
    """Count the receipt against the order and move the order on; returns the units received."""
    received_now = 0
    for line in db_receiving.items:
        if line.status == ReceivedLineStatus.RECEIVED:
            _allocate(db_po, line.product_id, line.received_qty)
            received_now += line.received_qty
    db_receiving.status = ReceivingStatus.SUBMITTED
    db.flush()

    if received_now > 0:
        changes = {"invoice_number": db_receiving.invoice_number, "invoice_receiving_id": db_receiving.id}
        remarks = f"Invoice {db_receiving.invoice_number} received"
        # One receipt may take both receive steps; both are authorised at the stage it started from
        ctx = effective_context(db, user, db_po.current_stage)
        if Stage(db_po.current_stage) == Stage.ORDERED:
            crud_po.apply_workflow_action(db, db_po, Action.RECEIVE, user, remarks, changes, ctx=ctx)
        if crud_po.is_fully_received(db_po):
            crud_po.apply_workflow_action(db, db_po, Action.RECEIVE, user, remarks, changes, ctx=ctx)
    return received_now


def create_invoice_receiving(db: Session, receiving_in, user: UserContext) -> InvoiceReceiving:
    db_po = _receivable_po(db, receiving_in.purchase_order_id)
    ordered = _validate_lines(receiving_in, receiving_in.products, db_po, date.today())

    db_receiving = InvoiceReceiving(
        purchase_order_id=db_po.id,
        invoice_number=receiving_in.invoice_number,
        invoice_date=receiving_in.invoice_date,
        invoice_amount_paise=to_paise(receiving_in.invoice_amount),
        received_date=receiving_in.received_date or date.today(),
        received_by=user.username,
        status=ReceivingStatus.DRAFT,
        qc_status="pending",
        notes=receiving_in.notes,
        created_by=user.username,
    )
    db_receiving.items = _build_lines(db_po, receiving_in.products, ordered)
    db.add(db_receiving)
    db.flush()

    if receiving_in.save_as_draft:
        logger.info(f"Draft invoice {db_receiving.invoice_number} saved against PO {db_po.po_number} by user {user.username}")
        return db_receiving

    received_now = _book_receipt(db, db_receiving, db_po, user)
    logger.info(
        f"Invoice {db_receiving.invoice_number} recorded against PO {db_po.po_number} "
        f"({received_now} units) by user {user.username}"
    )
    return db_receiving


def _check_draft(db_receiving: InvoiceReceiving, verb: str) -> None:
    if db_receiving.status != ReceivingStatus.DRAFT:
        raise WorkflowActionError(
            f"Only draft invoice receivings can be {verb}; this one is {db_receiving.status.value}", status_code=409
        )


def update_invoice_receiving(db: Session, db_receiving: InvoiceReceiving, receiving_update,
                             user: UserContext) -> InvoiceReceiving:
    """Edit a draft; the lines are replaced when ``products`` is given."""
    _check_draft(db_receiving, "edited")
    db_po = _receivable_po(db, db_receiving.purchase_order_id)

    data = receiving_update.model_dump(exclude_unset=True)
    header = {key: getattr(db_receiving, key) for key in HEADER_FIELDS}
    header.update({key: value for key, value in data.items()
                   if key in HEADER_FIELDS and (value is not None or key == "notes")})
    merged = SimpleNamespace(**header)
    lines = receiving_update.products if receiving_update.products is not None else [
        _line_input(item) for item in db_receiving.items
    ]
    ordered = _validate_lines(merged, lines, db_po, date.today())

    old_values = sqlalchemy_to_dict(db_receiving)
    for key in HEADER_FIELDS:
        setattr(db_receiving, key, header[key])
    if "invoice_amount" in data and data["invoice_amount"] is not None:
        db_receiving.invoice_amount_paise = to_paise(data["invoice_amount"])
    if receiving_update.products is not None:
        db_receiving.items = _build_lines(db_po, lines, ordered)
    db_receiving.updated_by = user.username
    db_receiving.updated_at = now_local()
    db.flush()
    create_audit_log(db, AuditLogCreate(
        table_name="invoice_receivings",
        record_id=db_receiving.id,
        changed_by=user.username,
        action="UPDATE",
        old_values=old_values,
        new_values=sqlalchemy_to_dict(db_receiving),
    ))
    logger.info(f"Draft invoice {db_receiving.invoice_number} updated by user {user.username}")
    return db_receiving


def _line_input(item: InvoiceReceivingItem) -> InvoiceReceivingItemIn:
    return InvoiceReceivingItemIn(
        product_id=item.product_id,
        received_qty=item.received_qty,
        foc=item.foc,
        unit_price=item.unit_price,
        batch_no=item.batch_no,
        mfg_date=item.mfg_date,
        exp_date=item.exp_date,
        status=item.status,
        remarks=item.remarks,
    )


def submit_invoice_receiving(db: Session, db_receiving: InvoiceReceiving, user: UserContext) -> InvoiceReceiving:
    """Book a draft against its order; quantities are re-checked against what has arrived since."""
    _check_draft(db_receiving, "submitted")
    db_po = _receivable_po(db, db_receiving.purchase_order_id)
    _validate_lines(db_receiving, [_line_input(item) for item in db_receiving.items], db_po, date.today())
    received_now = _book_receipt(db, db_receiving, db_po, user)
    db_receiving.updated_by = user.username
    logger.info(
        f"Draft invoice {db_receiving.invoice_number} submitted against PO {db_po.po_number} "
        f"({received_now} units) by user {user.username}"
    )
    return db_receiving


def delete_invoice_receiving(db: Session, db_receiving: InvoiceReceiving, user: UserContext) -> None:
    _check_draft(db_receiving, "deleted")
    old_values = sqlalchemy_to_dict(db_receiving)
    db.delete(db_receiving)
    db.flush()
    create_audit_log(db, AuditLogCreate(
        table_name="invoice_receivings",
        record_id=old_values["id"],
        changed_by=user.username,
        action="DELETE",
        old_values=old_values,
    ))
    logger.info(f"Draft invoice {old_values['invoice_number']} deleted by user {user.username}")
