from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from medsupply.crud import master_data
from medsupply.database import get_db
from medsupply.models.doctors import Doctor as DoctorModel
from medsupply.models.hospitals import Hospital as HospitalModel
from medsupply.models.inventory import StockMovement as StockMovementModel
from medsupply.schemas.common import ApiResponse, Page, ok, paginate
from medsupply.schemas.hospitals import Hospital, HospitalCreate, HospitalUpdate
from medsupply.utils.access import UserContext
from medsupply.utils.auth_utils import require_permission

router = APIRouter(prefix="/hospitals", tags=["Hospitals"])
logger = logging.getLogger("hospitals")

REFERENCES = [(DoctorModel, "hospital_id"), (StockMovementModel, "hospital_id")]


def _get_or_404(db: Session, hospital_id: int):
    db_hospital = db.query(HospitalModel).filter(HospitalModel.id == hospital_id).first()
    if db_hospital is None:
        raise HTTPException(status_code=404, detail="Hospital not found")
    return db_hospital


@router.post("/", response_model=ApiResponse[Hospital], status_code=status.HTTP_201_CREATED)
def create_hospital(
    hospital: HospitalCreate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("hospitals", "create")),
):
    master_data.check_unique(db, HospitalModel, "name", hospital.name)
    db_hospital = master_data.create_record(db, HospitalModel, hospital.model_dump(), user, "hospitals")
    db.commit()
    db.refresh(db_hospital)
    logger.info(f"Hospital '{db_hospital.name}' created by user {user.username}")
    return ok(db_hospital, "Hospital created successfully")


@router.get("/", response_model=ApiResponse[Page[Hospital]])
def read_hospitals(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    city: Optional[str] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("hospitals", "view")),
):
    query = db.query(HospitalModel)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            HospitalModel.name.ilike(pattern),
            HospitalModel.contact_person.ilike(pattern),
            HospitalModel.city.ilike(pattern),
        ))
    if city:
        query = query.filter(HospitalModel.city.ilike(city.strip()))
    if is_active is not None:
        query = query.filter(HospitalModel.is_active == is_active)
    rows, pagination = paginate(query.order_by(HospitalModel.name), page, limit)
    return ok({"items": rows, "pagination": pagination})


@router.get("/{hospital_id}", response_model=ApiResponse[Hospital])
def read_hospital(
    hospital_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("hospitals", "view")),
):
    return ok(_get_or_404(db, hospital_id))


@router.patch("/{hospital_id}", response_model=ApiResponse[Hospital])
def update_hospital(
    hospital_id: int,
    hospital: HospitalUpdate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("hospitals", "update")),
):
    db_hospital = _get_or_404(db, hospital_id)
    data = hospital.model_dump(exclude_unset=True)
    master_data.check_unique(db, HospitalModel, "name", data.get("name"), exclude_id=hospital_id)
    master_data.update_record(db, db_hospital, data, user, "hospitals")
    db.commit()
    db.refresh(db_hospital)
    logger.info(f"Hospital '{db_hospital.name}' (ID: {hospital_id}) updated by user {user.username}")
    return ok(db_hospital, "Hospital updated successfully")


@router.delete("/{hospital_id}", response_model=ApiResponse[dict])
def delete_hospital(
    hospital_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("hospitals", "delete")),
):
    db_hospital = _get_or_404(db, hospital_id)
    deactivated = master_data.retire_record(db, db_hospital, REFERENCES, user, "hospitals", {"is_active": False})
    db.commit()
    if deactivated:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Hospital '{db_hospital.name}' has doctors or recorded utilizations. Status changed to inactive.",
        )
    return ok({"id": hospital_id}, "Hospital deleted successfully")
