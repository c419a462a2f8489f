from datetime import date
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from medsupply.crud import quality_control as crud_qc
from medsupply.database import get_db
from medsupply.models.quality_control import Priority, QCResult, QCStatus
from medsupply.schemas.assignments import BulkAssign, BulkAssignResult, InspectionStatistics, WorkloadRow
from medsupply.schemas.common import ApiResponse, Page, ok, paginate
from medsupply.schemas.quality_control import (
    QCBulkItemUpdate,
    QCDashboard,
    QCDecision,
    QCItemUpdate,
    QCSubmit,
    QualityControl,
    QualityControlCreate,
    QualityControlSummary,
)
from medsupply.utils.access import UserContext
from medsupply.utils.auth_utils import require_permission

router = APIRouter(prefix="/quality-control", tags=["Quality Control"])
logger = logging.getLogger("quality_control")


def _get_or_404(db: Session, qc_id: int):
    qc = crud_qc.get_quality_control(db, qc_id)
    if qc is None:
        raise HTTPException(status_code=404, detail="Quality control not found")
    return qc


@router.post("/", response_model=ApiResponse[QualityControl], status_code=status.HTTP_201_CREATED)
def create_quality_control(
    qc_in: QualityControlCreate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("quality_control", "create")),
):
    """Open an inspection for an invoice receiving, one item per received unit."""
    qc = crud_qc.create_from_receiving(db, qc_in, user)
    db.commit()
    return ok(_get_or_404(db, qc.id), "Quality control created successfully")


@router.get("/", response_model=ApiResponse[Page[QualityControlSummary]])
def read_quality_controls(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[QCStatus] = None,
    overall_result: Optional[QCResult] = None,
    priority: Optional[Priority] = None,
    purchase_order_id: Optional[int] = None,
    assigned_to: Optional[str] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("quality_control", "view")),
):
    query = crud_qc.query_quality_controls(db, status, overall_result, priority, purchase_order_id, assigned_to, search)
    rows, pagination = paginate(query, page, limit)
    return ok({"items": rows, "pagination": pagination})


@router.get("/dashboard", response_model=ApiResponse[QCDashboard])
def read_dashboard(
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("quality_control", "view")),
):
    return ok(crud_qc.dashboard(db))


@router.post("/assign", response_model=ApiResponse[BulkAssignResult])
def bulk_assign_quality_controls(
    body: BulkAssign,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("quality_control", "assign")),
):
    """Assign several open inspections at once; completed ones are skipped."""
    result = crud_qc.bulk_assign(db, body.ids, body.assigned_to, user, body.priority)
    db.commit()
    return ok(result, f"{result['modified']} quality control(s) assigned to {body.assigned_to}")


@router.get("/workload", response_model=ApiResponse[List[WorkloadRow]])
def read_workload(
    include_closed: bool = False,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("quality_control", "view")),
):
    return ok(crud_qc.workload(db, include_closed))


@router.get("/statistics", response_model=ApiResponse[InspectionStatistics])
def read_statistics(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("quality_control", "view")),
):
    return ok(crud_qc.statistics(db, date_from, date_to))


@router.get("/{qc_id}", response_model=ApiResponse[QualityControl])
def read_quality_control(
    qc_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("quality_control", "view")),
):
    return ok(_get_or_404(db, qc_id))


@router.patch("/{qc_id}/items/{item_id}", response_model=ApiResponse[QualityControl])
def update_qc_item(
    qc_id: int,
    item_id: int,
    update: QCItemUpdate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("quality_control", "update")),
):
    qc = _get_or_404(db, qc_id)
    try:
        crud_qc.update_item(db, qc, item_id, update, user)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    db.commit()
    logger.info(f"QC item {item_id} of {qc.qc_number} marked {update.status.value} by user {user.username}")
    return ok(_get_or_404(db, qc_id), "QC item updated")


@router.patch("/{qc_id}/products/{qc_product_id}/items", response_model=ApiResponse[QualityControl])
def bulk_update_qc_items(
    qc_id: int,
    qc_product_id: int,
    update: QCBulkItemUpdate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("quality_control", "update")),
):
    """Mark several units of one product at once; without item_ids every pending unit is marked."""
    qc = _get_or_404(db, qc_id)
    try:
        crud_qc.bulk_update_items(db, qc, qc_product_id, update, user)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    db.commit()
    logger.info(f"QC product {qc_product_id} of {qc.qc_number} bulk marked {update.status.value} by user {user.username}")
    return ok(_get_or_404(db, qc_id), "QC items updated")


@router.post("/{qc_id}/submit", response_model=ApiResponse[QualityControl])
def submit_quality_control(
    qc_id: int,
    body: QCSubmit,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("quality_control", "submit")),
):
    qc = _get_or_404(db, qc_id)
    crud_qc.submit(db, qc, user, body.remarks)
    db.commit()
    return ok(_get_or_404(db, qc_id), "Quality control submitted for approval")


@router.post("/{qc_id}/approve", response_model=ApiResponse[QualityControl])
def approve_quality_control(
    qc_id: int,
    decision: QCDecision,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("quality_control", "approve")),
):
    """Approve the inspection; passed stock is handed to warehouse approval."""
    qc = _get_or_404(db, qc_id)
    qc, approval = crud_qc.approve(db, qc, user, decision.remarks, decision.warehouse_id)
    db.commit()
    message = "Quality control approved"
    if approval is not None:
        message += f"; warehouse approval {approval.approval_number} created"
    return ok(_get_or_404(db, qc_id), message)


@router.post("/{qc_id}/reject", response_model=ApiResponse[QualityControl])
def reject_quality_control(
    qc_id: int,
    decision: QCDecision,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("quality_control", "reject")),
):
    qc = _get_or_404(db, qc_id)
    crud_qc.reject(db, qc, user, decision.remarks)
    db.commit()
    return ok(_get_or_404(db, qc_id), "Quality control rejected")
