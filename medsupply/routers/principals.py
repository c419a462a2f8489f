from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from medsupply.crud import master_data
from medsupply.database import get_db
from medsupply.models.principals import Principal as PrincipalModel
from medsupply.models.products import Product as ProductModel
from medsupply.models.purchase_orders import PurchaseOrder as PurchaseOrderModel
from medsupply.schemas.common import ApiResponse, Page, ok, paginate
from medsupply.schemas.principals import Principal, PrincipalCreate, PrincipalUpdate
from medsupply.utils.access import UserContext
from medsupply.utils.auth_utils import require_permission

router = APIRouter(prefix="/principals", tags=["Principals"])
logger = logging.getLogger("principals")

REFERENCES = [(PurchaseOrderModel, "principal_id"), (ProductModel, "principal_id")]


def _get_or_404(db: Session, principal_id: int):
    db_principal = db.query(PrincipalModel).filter(PrincipalModel.id == principal_id).first()
    if db_principal is None:
        raise HTTPException(status_code=404, detail="Principal not found")
    return db_principal


@router.post("/", response_model=ApiResponse[Principal], status_code=status.HTTP_201_CREATED)
def create_principal(
    principal: PrincipalCreate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("principals", "create")),
):
    master_data.check_unique(db, PrincipalModel, "name", principal.name)
    db_principal = master_data.create_record(db, PrincipalModel, principal.model_dump(), user, "principals")
    db.commit()
    db.refresh(db_principal)
    logger.info(f"Principal '{db_principal.name}' created by user {user.username}")
    return ok(db_principal, "Principal created successfully")


@router.get("/", response_model=ApiResponse[Page[Principal]])
def read_principals(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    portfolio_id: Optional[int] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("principals", "view")),
):
    query = db.query(PrincipalModel)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            PrincipalModel.name.ilike(pattern),
            PrincipalModel.gst_number.ilike(pattern),
            PrincipalModel.city.ilike(pattern),
        ))
    if portfolio_id:
        query = query.filter(PrincipalModel.portfolio_id == portfolio_id)
    if is_active is not None:
        query = query.filter(PrincipalModel.is_active == is_active)
    rows, pagination = paginate(query.order_by(PrincipalModel.name), page, limit)
    return ok({"items": rows, "pagination": pagination})


@router.get("/{principal_id}", response_model=ApiResponse[Principal])
def read_principal(
    principal_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("principals", "view")),
):
    return ok(_get_or_404(db, principal_id))


@router.patch("/{principal_id}", response_model=ApiResponse[Principal])
def update_principal(
    principal_id: int,
    principal: PrincipalUpdate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("principals", "update")),
):
    db_principal = _get_or_404(db, principal_id)
    data = principal.model_dump(exclude_unset=True)
    master_data.check_unique(db, PrincipalModel, "name", data.get("name"), exclude_id=principal_id)
    master_data.update_record(db, db_principal, data, user, "principals")
    db.commit()
    db.refresh(db_principal)
    logger.info(f"Principal '{db_principal.name}' (ID: {principal_id}) updated by user {user.username}")
    return ok(db_principal, "Principal updated successfully")


@router.delete("/{principal_id}", response_model=ApiResponse[dict])
def delete_principal(
    principal_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("principals", "delete")),
):
    db_principal = _get_or_404(db, principal_id)
    deactivated = master_data.retire_record(db, db_principal, REFERENCES, user, "principals", {"is_active": False})
    db.commit()
    if deactivated:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Principal '{db_principal.name}' has products or purchase orders. Status changed to inactive.",
        )
    return ok({"id": principal_id}, "Principal deleted successfully")
