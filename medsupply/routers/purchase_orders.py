from datetime import date
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from medsupply.crud import purchase_orders as crud_po
from medsupply.crud.stage_permissions import effective_context
from medsupply.database import get_db
from medsupply.schemas.common import ApiResponse, Page, ok, paginate
from medsupply.schemas.purchase_orders import (
    BacklogLine,
    PurchaseOrder,
    PurchaseOrderCreate,
    PurchaseOrderHistory,
    PurchaseOrderSummary,
    PurchaseOrderUpdate,
    TotalsPreview,
    WorkflowActionCheck,
    WorkflowActionRequest,
)
from medsupply.models.purchase_order_history import PurchaseOrderHistory as PurchaseOrderHistoryModel
from medsupply.utils.access import UserContext
from medsupply.utils.auth_utils import get_user_context, require_permission
from medsupply.utils.errors import ValidationFailed, WorkflowActionError
from medsupply.utils.exports import PURCHASE_ORDER_HEADERS, purchase_order_rows, to_csv, to_xlsx
from medsupply.utils.money import from_paise
from medsupply.utils.pdf_utils import generate_purchase_order_pdf
from medsupply.utils.po_validation import validate_purchase_order
from medsupply.utils.workflow_table import Action, POStatus, Stage, available_actions, next_stage, required_permission

router = APIRouter(prefix="/purchase-orders", tags=["Purchase Orders"])
logger = logging.getLogger("purchase_orders")

EXPORT_LIMIT = 5000


def _get_or_404(db: Session, po_id: int):
    db_po = crud_po.get_purchase_order(db, po_id)
    if db_po is None:
        raise HTTPException(status_code=404, detail="Purchase Order not found")
    return db_po


@router.get("/", response_model=ApiResponse[Page[PurchaseOrderSummary]])
def read_purchase_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[POStatus] = None,
    stage: Optional[Stage] = None,
    principal_id: Optional[int] = None,
    search: Optional[str] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("purchase_orders", "view")),
):
    """List purchase orders, newest first, with filters mirrored from the query string."""
    query = crud_po.query_purchase_orders(db, status, principal_id, search, from_date, to_date, stage)
    rows, pagination = paginate(query, page, limit)
    return ok({"items": rows, "pagination": pagination})


@router.get("/export")
def export_purchase_orders(
    format: str = Query("csv", pattern="^(csv|xlsx)$"),
    status: Optional[POStatus] = None,
    stage: Optional[Stage] = None,
    principal_id: Optional[int] = None,
    search: Optional[str] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("purchase_orders", "export")),
):
    orders = crud_po.query_purchase_orders(db, status, principal_id, search, from_date, to_date, stage) \
        .limit(EXPORT_LIMIT).all()
    rows = purchase_order_rows(orders)
    filename = f"purchase_orders_{date.today():%Y%m%d}"
    logger.info(f"Exported {len(rows)} purchase orders as {format} for user {user.username}")
    if format == "xlsx":
        return Response(
            content=to_xlsx(PURCHASE_ORDER_HEADERS, rows, title="Purchase Orders"),
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={"Content-Disposition": f"attachment; filename={filename}.xlsx"},
        )
    return Response(
        content=to_csv(PURCHASE_ORDER_HEADERS, rows),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}.csv"},
    )


@router.post("/calculate-totals", response_model=ApiResponse[TotalsPreview])
def calculate_totals(
    po: PurchaseOrderCreate,
    user: UserContext = Depends(get_user_context),
):
    """Preview the totals of an order form without saving it."""
    errors = validate_purchase_order(po)
    if errors:
        raise ValidationFailed(errors)
    totals = crud_po.compute_totals(po, po.products)
    data = dict(totals.as_decimal(), line_totals=[from_paise(line.net_paise) for line in totals.lines])
    return ok(data)


@router.post("/", response_model=ApiResponse[PurchaseOrder], status_code=status.HTTP_201_CREATED)
def create_purchase_order(
    po: PurchaseOrderCreate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("purchase_orders", "create")),
):
    """Create a new purchase order in DRAFT with its product lines."""
    db_po = crud_po.create_purchase_order(db, po, user)
    db.commit()
    logger.info(f"Purchase Order {db_po.po_number} (ID: {db_po.id}) created by user {user.username}")
    return ok(_get_or_404(db, db_po.id), "Purchase order created successfully")


@router.get("/{po_id}", response_model=ApiResponse[PurchaseOrder])
def read_purchase_order(
    po_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("purchase_orders", "view")),
):
    """Retrieve a single purchase order with its lines and workflow history."""
    return ok(_get_or_404(db, po_id))


@router.patch("/{po_id}", response_model=ApiResponse[PurchaseOrder])
def update_purchase_order(
    po_id: int,
    po_update: PurchaseOrderUpdate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(get_user_context),
):
    """Partial update; allowed only at stages that list 'edit'. Totals are recomputed."""
    db_po = _get_or_404(db, po_id)
    crud_po.update_purchase_order(db, db_po, po_update, user)
    db.commit()
    logger.info(f"Purchase Order (ID: {po_id}) updated by user {user.username}")
    return ok(_get_or_404(db, po_id), "Purchase order updated successfully")


@router.delete("/{po_id}", response_model=ApiResponse[dict])
def delete_purchase_order(
    po_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("purchase_orders", "delete")),
):
    """Soft delete a draft purchase order."""
    db_po = _get_or_404(db, po_id)
    crud_po.delete_purchase_order(db, db_po, user)
    db.commit()
    logger.info(f"Purchase Order (ID: {po_id}) soft deleted by user {user.username}")
    return ok({"id": po_id}, "Purchase order deleted successfully")


@router.post("/{po_id}/actions", response_model=ApiResponse[PurchaseOrder])
def perform_workflow_action(
    po_id: int,
    request: WorkflowActionRequest,
    db: Session = Depends(get_db),
    user: UserContext = Depends(get_user_context),
):
    """Move the order through the workflow. The stage table is re-checked here."""
    db_po = _get_or_404(db, po_id)
    if request.action == Action.EDIT.value:
        raise HTTPException(status_code=400, detail="Use PATCH /purchase-orders/{id} to edit an order")
    if request.action == Action.RECEIVE.value:
        raise HTTPException(status_code=400, detail="Record an invoice receiving to receive products")
    crud_po.apply_workflow_action(db, db_po, request.action, user, request.remarks)
    db.commit()
    return ok(_get_or_404(db, po_id), f"Action '{request.action}' completed")


@router.post("/{po_id}/validate-action", response_model=ApiResponse[WorkflowActionCheck])
def validate_workflow_action(
    po_id: int,
    request: WorkflowActionRequest,
    db: Session = Depends(get_db),
    user: UserContext = Depends(get_user_context),
):
    """Dry run of an action: reports whether it would be accepted and where it leads."""
    db_po = _get_or_404(db, po_id)
    stage = Stage(db_po.current_stage)
    check = {
        "current_stage": stage,
        "next_stage": next_stage(stage, request.action),
        "required_permission": required_permission(stage, request.action),
    }
    try:
        crud_po.check_workflow_action(db, db_po, request.action, user, request.remarks)
    except WorkflowActionError as e:
        return ok(dict(check, is_valid=False, message=e.message))
    except ValidationFailed as e:
        return ok(dict(check, is_valid=False, message="; ".join(err.message for err in e.errors)))
    return ok(dict(check, is_valid=True, message="Action is allowed"))


@router.get("/{po_id}/available-actions", response_model=ApiResponse[List[Action]])
def read_available_actions(
    po_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(get_user_context),
):
    db_po = _get_or_404(db, po_id)
    ctx = effective_context(db, user, db_po.current_stage)
    return ok(available_actions(db_po.current_stage, ctx.permissions))


@router.get("/{po_id}/history", response_model=ApiResponse[Page[PurchaseOrderHistory]])
def read_purchase_order_history(
    po_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("purchase_orders", "view")),
):
    _get_or_404(db, po_id)
    query = db.query(PurchaseOrderHistoryModel).filter(PurchaseOrderHistoryModel.purchase_order_id == po_id) \
        .order_by(PurchaseOrderHistoryModel.id.desc())
    rows, pagination = paginate(query, page, limit)
    return ok({"items": rows, "pagination": pagination})


@router.get("/{po_id}/backlog", response_model=ApiResponse[List[BacklogLine]])
def read_backlog(
    po_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("purchase_orders", "view")),
):
    return ok(crud_po.get_backlog(_get_or_404(db, po_id)))


@router.get("/{po_id}/pdf")
def download_purchase_order_pdf(
    po_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("purchase_orders", "view")),
):
    db_po = _get_or_404(db, po_id)
    return Response(
        content=generate_purchase_order_pdf(db_po),
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={db_po.po_number}.pdf"},
    )
