from typing import List, Optional
import logging
import os

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from medsupply.crud import inventory as crud_inventory
from medsupply.crud.warehouse_approvals import resolve_warehouse
from medsupply.crud.master_data import check_reference
from medsupply.database import get_db
from medsupply.models.doctors import Doctor as DoctorModel
from medsupply.models.hospitals import Hospital as HospitalModel
from medsupply.models.inventory import StockStatus
from medsupply.schemas.common import ApiResponse, Page, ok, paginate
from medsupply.schemas.inventory import (
    InventoryAlerts,
    InventoryItem,
    InventoryLimits,
    InventoryStatistics,
    InventoryValuation,
    StockAdjustment,
    StockMovement,
    StockRelease,
    StockReservation,
    StockTransfer,
    StockUtilization,
)
from medsupply.utils.access import UserContext
from medsupply.utils.auth_utils import require_permission
from medsupply.utils.errors import FieldError, ValidationFailed

load_dotenv()

router = APIRouter(prefix="/inventory", tags=["Inventory"])
logger = logging.getLogger("inventory")

NEAR_EXPIRY_DAYS = int(os.getenv("NEAR_EXPIRY_DAYS", "90"))


def _get_or_404(db: Session, inventory_id: int):
    inv = crud_inventory.get_inventory(db, inventory_id)
    if inv is None:
        raise HTTPException(status_code=404, detail="Inventory record not found")
    return inv


@router.get("/", response_model=ApiResponse[Page[InventoryItem]])
def read_inventory(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    product_id: Optional[int] = None,
    warehouse_id: Optional[int] = None,
    stock_status: Optional[StockStatus] = None,
    search: Optional[str] = None,
    in_stock_only: bool = False,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("inventory", "view")),
):
    """Stock lots, earliest expiry first."""
    query = crud_inventory.query_inventory(db, product_id, warehouse_id, stock_status, search, in_stock_only)
    rows, pagination = paginate(query, page, limit)
    return ok({"items": rows, "pagination": pagination})


@router.get("/alerts", response_model=ApiResponse[InventoryAlerts])
def read_alerts(
    near_expiry_days: int = Query(NEAR_EXPIRY_DAYS, ge=1),
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("inventory", "view")),
):
    return ok(crud_inventory.get_alerts(db, near_expiry_days))


@router.get("/statistics", response_model=ApiResponse[InventoryStatistics])
def read_statistics(
    warehouse_id: Optional[int] = None,
    near_expiry_days: int = Query(NEAR_EXPIRY_DAYS, ge=1),
    top: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("inventory", "view")),
):
    return ok(crud_inventory.inventory_statistics(db, near_expiry_days, warehouse_id, top=top))


@router.get("/valuation", response_model=ApiResponse[InventoryValuation])
def read_valuation(
    warehouse_id: Optional[int] = None,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("inventory", "view")),
):
    """Stock on hand valued at lot cost, per warehouse and per product category."""
    return ok(crud_inventory.inventory_valuation(db, warehouse_id))


@router.get("/{inventory_id}", response_model=ApiResponse[InventoryItem])
def read_inventory_item(
    inventory_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("inventory", "view")),
):
    return ok(_get_or_404(db, inventory_id))


@router.patch("/{inventory_id}", response_model=ApiResponse[InventoryItem])
def update_inventory_limits(
    inventory_id: int,
    limits: InventoryLimits,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("inventory", "manage")),
):
    inv = _get_or_404(db, inventory_id)
    data = limits.model_dump(exclude_unset=True)
    minimum = data.get("minimum_stock", inv.minimum_stock)
    maximum = data.get("maximum_stock", inv.maximum_stock)
    if maximum is not None and minimum is not None and maximum < minimum:
        raise ValidationFailed([FieldError("maximum_stock", "Maximum stock cannot be below minimum stock")])
    for key, value in data.items():
        setattr(inv, key, value)
    inv.updated_by = user.username
    db.commit()
    logger.info(f"Inventory {inventory_id} limits updated by user {user.username}")
    return ok(_get_or_404(db, inventory_id), "Inventory updated")


@router.get("/{inventory_id}/movements", response_model=ApiResponse[Page[StockMovement]])
def read_movements(
    inventory_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("inventory", "view")),
):
    _get_or_404(db, inventory_id)
    rows, pagination = paginate(crud_inventory.get_movements(db, inventory_id), page, limit)
    return ok({"items": rows, "pagination": pagination})


@router.post("/{inventory_id}/adjust", response_model=ApiResponse[InventoryItem])
def adjust_inventory(
    inventory_id: int,
    adjustment: StockAdjustment,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("inventory", "adjust")),
):
    inv = _get_or_404(db, inventory_id)
    crud_inventory.adjust_stock(db, inv, adjustment.quantity, adjustment.reason, user,
                                adjustment.remarks, adjustment.movement_type)
    db.commit()
    return ok(_get_or_404(db, inventory_id), "Stock adjusted")


@router.post("/{inventory_id}/reserve", response_model=ApiResponse[InventoryItem])
def reserve_inventory(
    inventory_id: int,
    reservation: StockReservation,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("inventory", "reserve")),
):
    inv = _get_or_404(db, inventory_id)
    crud_inventory.reserve_stock(db, inv, reservation.quantity, user, reservation.reference_number)
    db.commit()
    return ok(_get_or_404(db, inventory_id), "Stock reserved")


@router.post("/{inventory_id}/release", response_model=ApiResponse[InventoryItem])
def release_inventory(
    inventory_id: int,
    release: StockRelease,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("inventory", "reserve")),
):
    inv = _get_or_404(db, inventory_id)
    crud_inventory.release_stock(db, inv, release.quantity, user)
    db.commit()
    return ok(_get_or_404(db, inventory_id), "Reservation released")


@router.post("/{inventory_id}/transfer", response_model=ApiResponse[List[InventoryItem]])
def transfer_inventory(
    inventory_id: int,
    transfer: StockTransfer,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("inventory", "transfer")),
):
    """Move stock to another warehouse or location; returns the source and destination lots."""
    inv = _get_or_404(db, inventory_id)
    warehouse = resolve_warehouse(db, transfer.warehouse_id)
    location = transfer.model_dump(include={"zone", "rack", "shelf", "bin"})
    destination = crud_inventory.transfer_stock(db, inv, transfer.quantity, warehouse.id, location, user, transfer.remarks)
    db.commit()
    return ok([_get_or_404(db, inventory_id), _get_or_404(db, destination.id)], "Stock transferred")


@router.post("/{inventory_id}/utilize", response_model=ApiResponse[StockMovement])
def utilize_inventory(
    inventory_id: int,
    utilization: StockUtilization,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("inventory", "utilize")),
):
    """Record units consumed for a patient case; returns the outward movement."""
    inv = _get_or_404(db, inventory_id)
    check_reference(db, HospitalModel, "hospital_id", utilization.hospital_id)
    check_reference(db, DoctorModel, "doctor_id", utilization.doctor_id)
    details = utilization.model_dump(exclude={"quantity"})
    movement = crud_inventory.utilize_stock(db, inv, utilization.quantity, user, **details)
    db.commit()
    db.refresh(movement)
    return ok(movement, "Utilization recorded successfully")
