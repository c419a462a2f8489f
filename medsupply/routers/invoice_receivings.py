from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from medsupply.crud import invoice_receivings as crud_receiving
from medsupply.database import get_db
from medsupply.models.invoice_receivings import ReceivingStatus
from medsupply.schemas.common import ApiResponse, Page, ok, paginate
from medsupply.schemas.invoice_receivings import InvoiceReceiving, InvoiceReceivingCreate, InvoiceReceivingUpdate
from medsupply.utils.access import UserContext
from medsupply.utils.auth_utils import require_permission
from medsupply.utils.pdf_utils import generate_invoice_receiving_pdf

router = APIRouter(prefix="/invoice-receivings", tags=["Invoice Receiving"])
logger = logging.getLogger("invoice_receiving")


def _get_or_404(db: Session, receiving_id: int):
    db_receiving = crud_receiving.get_invoice_receiving(db, receiving_id)
    if db_receiving is None:
        raise HTTPException(status_code=404, detail="Invoice receiving not found")
    return db_receiving


@router.post("/", response_model=ApiResponse[InvoiceReceiving], status_code=status.HTTP_201_CREATED)
def create_invoice_receiving(
    receiving: InvoiceReceivingCreate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("invoice_receiving", "create")),
):
    """Record products received against an ordered purchase order, or keep them as a draft."""
    db_receiving = crud_receiving.create_invoice_receiving(db, receiving, user)
    db.commit()
    message = "Invoice receiving saved as draft" if receiving.save_as_draft else "Invoice receiving recorded successfully"
    return ok(crud_receiving.get_invoice_receiving(db, db_receiving.id), message)


@router.get("/", response_model=ApiResponse[Page[InvoiceReceiving]])
def read_invoice_receivings(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    purchase_order_id: Optional[int] = None,
    status: Optional[ReceivingStatus] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("invoice_receiving", "view")),
):
    query = crud_receiving.query_invoice_receivings(db, purchase_order_id, status, search)
    rows, pagination = paginate(query, page, limit)
    return ok({"items": rows, "pagination": pagination})


@router.get("/{receiving_id}", response_model=ApiResponse[InvoiceReceiving])
def read_invoice_receiving(
    receiving_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("invoice_receiving", "view")),
):
    return ok(_get_or_404(db, receiving_id))


@router.put("/{receiving_id}", response_model=ApiResponse[InvoiceReceiving])
def update_invoice_receiving(
    receiving_id: int,
    receiving: InvoiceReceivingUpdate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("invoice_receiving", "update")),
):
    db_receiving = _get_or_404(db, receiving_id)
    crud_receiving.update_invoice_receiving(db, db_receiving, receiving, user)
    db.commit()
    return ok(_get_or_404(db, receiving_id), "Invoice receiving updated successfully")


@router.delete("/{receiving_id}", response_model=ApiResponse[dict])
def delete_invoice_receiving(
    receiving_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("invoice_receiving", "delete")),
):
    """Delete a draft receipt; submitted receipts are part of the order's history and stay."""
    db_receiving = _get_or_404(db, receiving_id)
    crud_receiving.delete_invoice_receiving(db, db_receiving, user)
    db.commit()
    return ok({"id": receiving_id}, "Invoice receiving deleted successfully")


@router.post("/{receiving_id}/submit", response_model=ApiResponse[InvoiceReceiving])
def submit_invoice_receiving(
    receiving_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("invoice_receiving", "create")),
):
    db_receiving = _get_or_404(db, receiving_id)
    crud_receiving.submit_invoice_receiving(db, db_receiving, user)
    db.commit()
    return ok(_get_or_404(db, receiving_id), "Invoice receiving submitted for quality control")


@router.get("/{receiving_id}/pdf")
def download_invoice_receiving_pdf(
    receiving_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("invoice_receiving", "view")),
):
    db_receiving = _get_or_404(db, receiving_id)
    return Response(
        content=generate_invoice_receiving_pdf(db_receiving, db_receiving.purchase_order.po_number),
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename=GRN-{db_receiving.invoice_number}.pdf"},
    )
