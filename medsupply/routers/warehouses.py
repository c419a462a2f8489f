from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from medsupply.crud import master_data
from medsupply.database import get_db
from medsupply.models.branches import Branch as BranchModel, BranchContact as BranchContactModel
from medsupply.models.inventory import Inventory as InventoryModel
from medsupply.models.warehouse_approvals import WarehouseApproval as WarehouseApprovalModel
from medsupply.models.warehouses import Warehouse as WarehouseModel, WarehouseStatus
from medsupply.schemas.common import ApiResponse, Page, ok, paginate
from medsupply.schemas.warehouses import Warehouse, WarehouseCreate, WarehouseUpdate
from medsupply.utils.access import UserContext
from medsupply.utils.auth_utils import require_permission

router = APIRouter(prefix="/warehouses", tags=["Warehouses"])
logger = logging.getLogger("warehouses")

REFERENCES = [(InventoryModel, "warehouse_id"), (WarehouseApprovalModel, "warehouse_id"),
              (BranchContactModel, "warehouse_id")]


def _get_or_404(db: Session, warehouse_id: int):
    db_warehouse = db.query(WarehouseModel).filter(WarehouseModel.id == warehouse_id).first()
    if db_warehouse is None:
        raise HTTPException(status_code=404, detail="Warehouse not found")
    return db_warehouse


def _clear_default(db: Session, keep_id: Optional[int] = None) -> None:
    # At most one default warehouse
    query = db.query(WarehouseModel).filter(WarehouseModel.is_default == True)
    if keep_id is not None:
        query = query.filter(WarehouseModel.id != keep_id)
    for other in query.all():
        other.is_default = False


@router.post("/", response_model=ApiResponse[Warehouse], status_code=status.HTTP_201_CREATED)
def create_warehouse(
    warehouse: WarehouseCreate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("warehouses", "create")),
):
    master_data.check_unique(db, WarehouseModel, "warehouse_code", warehouse.warehouse_code)
    master_data.check_reference(db, BranchModel, "branch_id", warehouse.branch_id)
    if warehouse.is_default:
        _clear_default(db)
    db_warehouse = master_data.create_record(db, WarehouseModel, warehouse.model_dump(), user, "warehouses")
    db.commit()
    db.refresh(db_warehouse)
    logger.info(f"Warehouse '{db_warehouse.warehouse_code}' created by user {user.username}")
    return ok(db_warehouse, "Warehouse created successfully")


@router.get("/", response_model=ApiResponse[Page[Warehouse]])
def read_warehouses(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    status: Optional[WarehouseStatus] = None,
    branch_id: Optional[int] = None,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("warehouses", "view")),
):
    query = db.query(WarehouseModel)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            WarehouseModel.warehouse_code.ilike(pattern),
            WarehouseModel.name.ilike(pattern),
            WarehouseModel.district.ilike(pattern),
        ))
    if status:
        query = query.filter(WarehouseModel.status == status)
    if branch_id:
        query = query.filter(WarehouseModel.branch_id == branch_id)
    rows, pagination = paginate(query.order_by(WarehouseModel.name), page, limit)
    return ok({"items": rows, "pagination": pagination})


@router.get("/{warehouse_id}", response_model=ApiResponse[Warehouse])
def read_warehouse(
    warehouse_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("warehouses", "view")),
):
    return ok(_get_or_404(db, warehouse_id))


@router.patch("/{warehouse_id}", response_model=ApiResponse[Warehouse])
def update_warehouse(
    warehouse_id: int,
    warehouse: WarehouseUpdate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("warehouses", "update")),
):
    db_warehouse = _get_or_404(db, warehouse_id)
    data = warehouse.model_dump(exclude_unset=True)
    master_data.check_unique(db, WarehouseModel, "warehouse_code", data.get("warehouse_code"), exclude_id=warehouse_id)
    master_data.check_reference(db, BranchModel, "branch_id", data.get("branch_id"))
    if data.get("is_default"):
        _clear_default(db, keep_id=warehouse_id)
    master_data.update_record(db, db_warehouse, data, user, "warehouses")
    db.commit()
    db.refresh(db_warehouse)
    logger.info(f"Warehouse '{db_warehouse.warehouse_code}' (ID: {warehouse_id}) updated by user {user.username}")
    return ok(db_warehouse, "Warehouse updated successfully")


@router.delete("/{warehouse_id}", response_model=ApiResponse[dict])
def delete_warehouse(
    warehouse_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("warehouses", "delete")),
):
    db_warehouse = _get_or_404(db, warehouse_id)
    deactivated = master_data.retire_record(
        db, db_warehouse, REFERENCES, user, "warehouses",
        {"status": WarehouseStatus.INACTIVE, "is_default": False},
    )
    db.commit()
    if deactivated:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Warehouse '{db_warehouse.warehouse_code}' holds stock or approvals. Status changed to inactive.",
        )
    return ok({"id": warehouse_id}, "Warehouse deleted successfully")
