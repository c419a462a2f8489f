from datetime import date
from typing import List, Optional
import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from medsupply.crud.audit_log import create_audit_log
from medsupply.crud.stage_permissions import effective_context
from medsupply.models.audit_mixin import now_local
from medsupply.models.principals import Principal
from medsupply.models.products import Product
from medsupply.models.purchase_orders import PurchaseOrder
from medsupply.models.purchase_order_items import PurchaseOrderItem
from medsupply.models.purchase_order_history import PurchaseOrderHistory
from medsupply.schemas.audit_log import AuditLogCreate
from medsupply.schemas.purchase_orders import AdjustmentIn, PurchaseOrderCreate, PurchaseOrderItemIn
from medsupply.utils import sqlalchemy_to_dict
from medsupply.utils.access import UserContext
from medsupply.utils.errors import FieldError, ValidationFailed, WorkflowActionError
from medsupply.utils.money import to_paise
from medsupply.utils.numbering import next_document_number
from medsupply.utils.po_totals import Adjustment, LineInput, POTotals, calculate_totals
from medsupply.utils.po_validation import validate_purchase_order
from medsupply.utils.workflow_table import (
    Action,
    Stage,
    next_stage,
    required_permission,
    requires_remarks,
    stage_actions,
    status_for,
)

logger = logging.getLogger("purchase_orders")

CLEARABLE_FIELDS = ("from_email", "terms", "notes")


def get_purchase_order(db: Session, po_id: int) -> Optional[PurchaseOrder]:
    return (
        db.query(PurchaseOrder)
        .options(
            selectinload(PurchaseOrder.items),
            selectinload(PurchaseOrder.history),
            selectinload(PurchaseOrder.principal),
        )
        .filter(PurchaseOrder.id == po_id)
        .first()
    )


def query_purchase_orders(
    db: Session,
    status=None,
    principal_id: Optional[int] = None,
    search: Optional[str] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    stage=None,
):
    query = db.query(PurchaseOrder).options(selectinload(PurchaseOrder.principal))
    if status:
        query = query.filter(PurchaseOrder.status == status)
    if stage:
        query = query.filter(PurchaseOrder.current_stage == stage)
    if principal_id:
        query = query.filter(PurchaseOrder.principal_id == principal_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            PurchaseOrder.po_number.ilike(pattern),
            PurchaseOrder.bill_to_name.ilike(pattern),
        ))
    if from_date:
        query = query.filter(PurchaseOrder.po_date >= from_date)
    if to_date:
        query = query.filter(PurchaseOrder.po_date <= to_date)
    return query.order_by(PurchaseOrder.po_date.desc(), PurchaseOrder.id.desc())


def generate_po_number(db: Session, po_date: date) -> str:
    """Next number in the month's sequence, e.g. PO-202410-0007."""
    return next_document_number(db, PurchaseOrder.po_number, "PO", po_date)


def _load_products(db: Session, lines) -> dict:
    ids = {line.product_id for line in lines}
    products = {p.id: p for p in db.query(Product).filter(Product.id.in_(ids)).all()}
    errors = [
        FieldError(f"products[{index}].product_id", f"Product {line.product_id} not found or inactive")
        for index, line in enumerate(lines)
        if line.product_id not in products or not products[line.product_id].is_active
    ]
    if errors:
        raise ValidationFailed(errors)
    return products


def compute_totals(po_in, lines) -> POTotals:
    adjustment = po_in.additional_discount
    shipping = po_in.shipping_charges
    totals = calculate_totals(
        [
            LineInput(
                quantity=line.quantity,
                unit_price=line.unit_price,
                foc=line.foc or 0,
                discount=line.discount or 0,
                discount_type=line.discount_type,
            )
            for line in lines
        ],
        additional_discount=Adjustment(value=adjustment.value, type=adjustment.type) if adjustment else None,
        shipping=Adjustment(value=shipping.value, type=shipping.type) if shipping else None,
        tax_type=po_in.tax_type,
        gst_rate=po_in.gst_rate,
    )
    if totals.total_after_discount_paise < 0:
        raise ValidationFailed([
            FieldError("additional_discount.value", "Additional discount cannot exceed the subtotal"),
        ])
    return totals


def _build_items(products: dict, lines, totals: POTotals) -> List[PurchaseOrderItem]:
    items = []
    for line, line_totals in zip(lines, totals.lines):
        product = products[line.product_id]
        items.append(PurchaseOrderItem(
            product_id=product.id,
            product_code=product.code,
            product_name=product.name,
            quantity=line.quantity,
            foc=line.foc or 0,
            unit_price_paise=to_paise(line.unit_price),
            discount=line.discount or 0,
            discount_type=line.discount_type,
            discount_amount_paise=line_totals.discount_paise,
            total_cost_paise=line_totals.net_paise,
            unit=line.unit or product.unit,
            gst_rate=line.gst_rate if line.gst_rate is not None else product.gst_percentage,
            received_qty=0,
            backlog_qty=line.quantity,
        ))
    return items


def _apply_header(db_po: PurchaseOrder, po_in, totals: POTotals) -> None:
    db_po.principal_id = po_in.principal_id
    db_po.po_date = po_in.po_date or db_po.po_date or date.today()
    db_po.bill_to = po_in.bill_to.model_dump()
    db_po.bill_to_name = po_in.bill_to.name
    db_po.ship_to = po_in.ship_to.model_dump()
    db_po.additional_discount_type = po_in.additional_discount.type
    db_po.additional_discount_value = po_in.additional_discount.value
    db_po.tax_type = po_in.tax_type
    db_po.gst_rate = po_in.gst_rate
    db_po.shipping_type = po_in.shipping_charges.type
    db_po.shipping_value = po_in.shipping_charges.value
    db_po.to_emails = list(po_in.to_emails)
    db_po.cc_emails = list(po_in.cc_emails)
    db_po.from_email = po_in.from_email
    db_po.terms = po_in.terms
    db_po.notes = po_in.notes
    for key, value in totals.as_paise().items():
        setattr(db_po, key, value)


def _check_principal(db: Session, principal_id: int) -> None:
    principal = db.query(Principal).filter(Principal.id == principal_id).first()
    if principal is None or not principal.is_active:
        raise ValidationFailed([FieldError("principal_id", "Principal not found or inactive")])


def record_history(db: Session, db_po: PurchaseOrder, action: str, user: UserContext,
                   remarks: Optional[str] = None, changes: Optional[dict] = None) -> PurchaseOrderHistory:
    entry = PurchaseOrderHistory(
        purchase_order_id=db_po.id,
        stage=db_po.current_stage,
        action=action,
        action_by=user.username,
        action_date=now_local(),
        remarks=remarks,
        changes=changes,
    )
    db.add(entry)
    db.flush()
    return entry


def create_purchase_order(db: Session, po_in, user: UserContext) -> PurchaseOrder:
    errors = validate_purchase_order(po_in)
    if errors:
        raise ValidationFailed(errors)
    _check_principal(db, po_in.principal_id)
    products = _load_products(db, po_in.products)
    totals = compute_totals(po_in, po_in.products)

    po_date = po_in.po_date or date.today()
    db_po = PurchaseOrder(
        po_number=generate_po_number(db, po_date),
        po_date=po_date,
        status=status_for(Stage.DRAFT),
        current_stage=Stage.DRAFT,
        created_by=user.username,
    )
    _apply_header(db_po, po_in, totals)
    db_po.items = _build_items(products, po_in.products, totals)
    db.add(db_po)
    db.flush()
    record_history(db, db_po, "created", user, remarks="Purchase order created")
    return db_po


def merge_update(db_po: PurchaseOrder, po_update):
    """Build a full create payload from the stored order overlaid with the update."""
    current = PurchaseOrderCreate(
        principal_id=db_po.principal_id,
        po_date=db_po.po_date,
        bill_to=db_po.bill_to,
        ship_to=db_po.ship_to,
        additional_discount=AdjustmentIn(type=db_po.additional_discount_type, value=db_po.additional_discount_value),
        tax_type=db_po.tax_type,
        gst_rate=db_po.gst_rate,
        shipping_charges=AdjustmentIn(type=db_po.shipping_type, value=db_po.shipping_value),
        to_emails=db_po.to_emails or [],
        cc_emails=db_po.cc_emails or [],
        from_email=db_po.from_email,
        terms=db_po.terms,
        notes=db_po.notes,
        products=[
            PurchaseOrderItemIn(
                product_id=item.product_id,
                quantity=item.quantity,
                foc=item.foc,
                unit_price=item.unit_price,
                discount=item.discount,
                discount_type=item.discount_type,
                unit=item.unit,
                gst_rate=item.gst_rate,
            )
            for item in db_po.items
        ],
    )
    # An explicit null clears these; on every other field it means "unchanged"
    overrides = {
        key: getattr(po_update, key)
        for key in po_update.model_fields_set
        if getattr(po_update, key) is not None or key in CLEARABLE_FIELDS
    }
    return current.model_copy(update=overrides)


def update_purchase_order(db: Session, db_po: PurchaseOrder, po_update, user: UserContext) -> PurchaseOrder:
    if Action.EDIT not in stage_actions(db_po.current_stage):
        raise WorkflowActionError(
            f"Purchase order cannot be edited at stage {Stage(db_po.current_stage).value}", status_code=409
        )
    ctx = effective_context(db, user, db_po.current_stage)
    permission = required_permission(db_po.current_stage, Action.EDIT)
    if permission not in ctx.permissions:
        raise WorkflowActionError(f"Permission denied: {permission} required", status_code=403)

    merged = merge_update(db_po, po_update)
    errors = validate_purchase_order(merged)
    if errors:
        raise ValidationFailed(errors)
    _check_principal(db, merged.principal_id)

    old_values = sqlalchemy_to_dict(db_po)
    totals = compute_totals(merged, merged.products)
    _apply_header(db_po, merged, totals)
    if po_update.products is not None:
        products = _load_products(db, merged.products)
        db_po.items = _build_items(products, merged.products, totals)
    else:
        for item, line_totals in zip(db_po.items, totals.lines):
            item.discount_amount_paise = line_totals.discount_paise
            item.total_cost_paise = line_totals.net_paise
    db_po.updated_by = user.username
    db_po.updated_at = now_local()
    db.flush()

    new_values = sqlalchemy_to_dict(db_po)
    changes = {key: {"old": old_values[key], "new": new_values[key]}
               for key in new_values if key not in ("updated_at", "updated_by") and old_values.get(key) != new_values[key]}
    record_history(db, db_po, "updated", user, remarks="Purchase order updated", changes=changes)
    create_audit_log(db, AuditLogCreate(
        table_name="purchase_orders",
        record_id=db_po.id,
        changed_by=user.username,
        action="UPDATE",
        old_values=old_values,
        new_values=new_values,
    ))
    return db_po


def delete_purchase_order(db: Session, db_po: PurchaseOrder, user: UserContext) -> None:
    """Soft delete; only drafts may be removed."""
    if Stage(db_po.current_stage) != Stage.DRAFT:
        raise WorkflowActionError("Only draft purchase orders can be deleted", status_code=409)
    old_values = sqlalchemy_to_dict(db_po)
    db_po.deleted_at = now_local()
    db_po.deleted_by = user.username
    db.flush()
    create_audit_log(db, AuditLogCreate(
        table_name="purchase_orders",
        record_id=db_po.id,
        changed_by=user.username,
        action="DELETE",
        old_values=old_values,
        new_values=sqlalchemy_to_dict(db_po),
    ))


def check_workflow_action(db: Session, db_po: PurchaseOrder, action: str, user: UserContext,
                          remarks: Optional[str] = None, ctx: Optional[UserContext] = None) -> Stage:
    """Re-validate a requested step against the stage table and the caller's permissions.

    ``ctx`` is the caller's already-resolved permission set; when omitted it is
    resolved for the order's current stage, stage grants included.
    Returns the stage the order would move to; raises WorkflowActionError otherwise.
    """
    stage = Stage(db_po.current_stage)
    try:
        action = Action(action)
    except ValueError:
        raise WorkflowActionError(f"Unknown action '{action}'")
    target = next_stage(stage, action)
    if target is None:
        raise WorkflowActionError(f"Action '{action.value}' is not allowed at stage {stage.value}")
    permission = required_permission(stage, action)
    if ctx is None:
        ctx = effective_context(db, user, stage)
    if permission not in ctx.permissions:
        raise WorkflowActionError(f"Permission denied: {permission} required", status_code=403)
    if requires_remarks(action) and not (remarks or "").strip():
        raise ValidationFailed([FieldError("remarks", f"Remarks are required to {action.value}")])
    return target


def apply_workflow_action(db: Session, db_po: PurchaseOrder, action: str, user: UserContext,
                          remarks: Optional[str] = None, changes: Optional[dict] = None,
                          ctx: Optional[UserContext] = None) -> PurchaseOrder:
    target = check_workflow_action(db, db_po, action, user, remarks, ctx)
    action = Action(action)
    from_stage = Stage(db_po.current_stage)
    from_status = db_po.status
    old_values = sqlalchemy_to_dict(db_po)

    db_po.current_stage = target
    db_po.status = status_for(target, action)
    if target == Stage.APPROVED_FINAL:
        db_po.approved_by = user.username
        db_po.approved_date = now_local()
    db_po.updated_by = user.username
    db_po.updated_at = now_local()
    db.flush()

    history_changes = {
        "from_stage": from_stage.value,
        "to_stage": target.value,
        "from_status": getattr(from_status, "value", from_status),
        "to_status": db_po.status.value,
    }
    if changes:
        history_changes.update(changes)
    record_history(db, db_po, action.value, user, remarks=remarks, changes=history_changes)
    create_audit_log(db, AuditLogCreate(
        table_name="purchase_orders",
        record_id=db_po.id,
        changed_by=user.username,
        action=f"WORKFLOW_{action.value.upper()}",
        old_values=old_values,
        new_values=sqlalchemy_to_dict(db_po),
    ))
    logger.info(
        f"Purchase Order {db_po.po_number} moved {from_stage.value} -> {target.value} "
        f"via '{action.value}' by user {user.username}"
    )
    return db_po


def advance_if_listed(db: Session, db_po: PurchaseOrder, action: str, user: UserContext,
                      remarks: Optional[str] = None, changes: Optional[dict] = None) -> bool:
    """Take ``action`` only when the current stage lists it as a transition."""
    if next_stage(db_po.current_stage, action) is None:
        return False
    apply_workflow_action(db, db_po, action, user, remarks, changes)
    return True


def get_backlog(db_po: PurchaseOrder) -> List[dict]:
    """Outstanding quantity per product; fully received products are omitted."""
    backlog = {}
    for item in db_po.items:
        outstanding = item.quantity - (item.received_qty or 0)
        if outstanding <= 0:
            continue
        entry = backlog.setdefault(item.product_id, {
            "product_id": item.product_id,
            "product_name": item.product_name,
            "ordered_qty": 0,
            "received_qty": 0,
            "backlog_qty": 0,
        })
        entry["ordered_qty"] += item.quantity
        entry["received_qty"] += item.received_qty or 0
        entry["backlog_qty"] += outstanding
    return list(backlog.values())


def is_fully_received(db_po: PurchaseOrder) -> bool:
    return bool(db_po.items) and all((item.received_qty or 0) >= item.quantity for item in db_po.items)
