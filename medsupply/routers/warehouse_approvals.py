from datetime import date
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from medsupply.crud import warehouse_approvals as crud_wa
from medsupply.database import get_db
from medsupply.models.warehouse_approvals import WarehouseApprovalStatus
from medsupply.schemas.assignments import BulkAssign, BulkAssignResult, InspectionStatistics, WorkloadRow
from medsupply.schemas.common import ApiResponse, Page, ok, paginate
from medsupply.schemas.warehouse_approvals import (
    ManagerDecision,
    WarehouseApproval,
    WarehouseApprovalSummary,
    WarehouseApprovalUpdate,
    WarehouseDashboard,
    WarehouseProductDecision,
    WarehouseSubmit,
)
from medsupply.utils.access import UserContext
from medsupply.utils.auth_utils import get_user_context, require_permission

router = APIRouter(prefix="/warehouse-approvals", tags=["Warehouse Approval"])
logger = logging.getLogger("warehouse_approval")


def _get_or_404(db: Session, approval_id: int):
    approval = crud_wa.get_warehouse_approval(db, approval_id)
    if approval is None:
        raise HTTPException(status_code=404, detail="Warehouse approval not found")
    return approval


@router.get("/", response_model=ApiResponse[Page[WarehouseApprovalSummary]])
def read_warehouse_approvals(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[WarehouseApprovalStatus] = None,
    warehouse_id: Optional[int] = None,
    purchase_order_id: Optional[int] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("warehouse_approval", "view")),
):
    query = crud_wa.query_warehouse_approvals(db, status, warehouse_id, purchase_order_id, search)
    rows, pagination = paginate(query, page, limit)
    return ok({"items": rows, "pagination": pagination})


@router.get("/dashboard", response_model=ApiResponse[WarehouseDashboard])
def read_dashboard(
    days: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("warehouse_approval", "view")),
):
    return ok(crud_wa.dashboard(db, days))


@router.post("/assign", response_model=ApiResponse[BulkAssignResult])
def bulk_assign_warehouse_approvals(
    body: BulkAssign,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("warehouse_approval", "assign")),
):
    result = crud_wa.bulk_assign(db, body.ids, body.assigned_to, user, body.priority)
    db.commit()
    return ok(result, f"{result['modified']} warehouse approval(s) assigned to {body.assigned_to}")


@router.get("/workload", response_model=ApiResponse[List[WorkloadRow]])
def read_workload(
    include_closed: bool = False,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("warehouse_approval", "view")),
):
    return ok(crud_wa.workload(db, include_closed))


@router.get("/statistics", response_model=ApiResponse[InspectionStatistics])
def read_statistics(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("warehouse_approval", "view")),
):
    """Turnaround runs from creation to the manager's final decision."""
    return ok(crud_wa.statistics(db, date_from, date_to))


@router.get("/{approval_id}", response_model=ApiResponse[WarehouseApproval])
def read_warehouse_approval(
    approval_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("warehouse_approval", "view")),
):
    return ok(_get_or_404(db, approval_id))


@router.patch("/{approval_id}", response_model=ApiResponse[WarehouseApproval])
def update_warehouse_approval(
    approval_id: int,
    update: WarehouseApprovalUpdate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("warehouse_approval", "update")),
):
    approval = _get_or_404(db, approval_id)
    crud_wa.update_approval(db, approval, update, user)
    db.commit()
    logger.info(f"Warehouse approval {approval.approval_number} updated by user {user.username}")
    return ok(_get_or_404(db, approval_id), "Warehouse approval updated")


@router.patch("/{approval_id}/products/{product_id}", response_model=ApiResponse[WarehouseApproval])
def decide_warehouse_product(
    approval_id: int,
    product_id: int,
    decision: WarehouseProductDecision,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("warehouse_approval", "update")),
):
    """Approve, reject, partially approve or hold one product line and set its storage location."""
    approval = _get_or_404(db, approval_id)
    product = next((p for p in approval.products if p.id == product_id), None)
    if product is None:
        raise HTTPException(status_code=404, detail="Warehouse approval product not found")
    crud_wa.decide_product(db, approval, product, decision, user)
    db.commit()
    return ok(_get_or_404(db, approval_id), "Product decision saved")


@router.post("/{approval_id}/submit", response_model=ApiResponse[WarehouseApproval])
def submit_warehouse_approval(
    approval_id: int,
    body: WarehouseSubmit,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("warehouse_approval", "submit")),
):
    approval = _get_or_404(db, approval_id)
    crud_wa.submit_approval(db, approval, user, body.remarks)
    db.commit()
    logger.info(f"Warehouse approval {approval.approval_number} submitted by user {user.username}")
    return ok(_get_or_404(db, approval_id), "Submitted for manager approval")


@router.post("/{approval_id}/manager-decision", response_model=ApiResponse[WarehouseApproval])
def manager_decision(
    approval_id: int,
    decision: ManagerDecision,
    db: Session = Depends(get_db),
    user: UserContext = Depends(get_user_context),
):
    """Final sign-off; approval puts the accepted quantities into inventory."""
    if not user.has_permission("warehouse_approval", f"manager_{decision.action}"):
        raise HTTPException(
            status_code=403,
            detail=f"Permission denied: warehouse_approval.manager_{decision.action} required",
        )
    approval = _get_or_404(db, approval_id)
    crud_wa.manager_decision(db, approval, decision, user)
    db.commit()
    return ok(_get_or_404(db, approval_id), f"Warehouse approval {decision.action}d")
