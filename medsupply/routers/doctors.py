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
from medsupply.schemas.doctors import Doctor, DoctorCreate, DoctorUpdate
from medsupply.utils.access import UserContext
from medsupply.utils.auth_utils import require_permission

router = APIRouter(prefix="/doctors", tags=["Doctors"])
logger = logging.getLogger("doctors")

REFERENCES = [(StockMovementModel, "doctor_id")]


def _get_or_404(db: Session, doctor_id: int):
    db_doctor = db.query(DoctorModel).filter(DoctorModel.id == doctor_id).first()
    if db_doctor is None:
        raise HTTPException(status_code=404, detail="Doctor not found")
    return db_doctor


@router.post("/", response_model=ApiResponse[Doctor], status_code=status.HTTP_201_CREATED)
def create_doctor(
    doctor: DoctorCreate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("doctors", "create")),
):
    master_data.check_reference(db, HospitalModel, "hospital_id", doctor.hospital_id)
    db_doctor = master_data.create_record(db, DoctorModel, doctor.model_dump(), user, "doctors")
    db.commit()
    db.refresh(db_doctor)
    logger.info(f"Doctor '{db_doctor.name}' created by user {user.username}")
    return ok(db_doctor, "Doctor created successfully")


@router.get("/", response_model=ApiResponse[Page[Doctor]])
def read_doctors(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    portfolio_id: Optional[int] = None,
    hospital_id: Optional[int] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("doctors", "view")),
):
    query = db.query(DoctorModel)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            DoctorModel.name.ilike(pattern),
            DoctorModel.specialization.ilike(pattern),
            DoctorModel.location.ilike(pattern),
        ))
    if portfolio_id:
        query = query.filter(DoctorModel.portfolio_id == portfolio_id)
    if hospital_id:
        query = query.filter(DoctorModel.hospital_id == hospital_id)
    if is_active is not None:
        query = query.filter(DoctorModel.is_active == is_active)
    rows, pagination = paginate(query.order_by(DoctorModel.name), page, limit)
    return ok({"items": rows, "pagination": pagination})


@router.get("/{doctor_id}", response_model=ApiResponse[Doctor])
def read_doctor(
    doctor_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("doctors", "view")),
):
    return ok(_get_or_404(db, doctor_id))


@router.patch("/{doctor_id}", response_model=ApiResponse[Doctor])
def update_doctor(
    doctor_id: int,
    doctor: DoctorUpdate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("doctors", "update")),
):
    db_doctor = _get_or_404(db, doctor_id)
    data = doctor.model_dump(exclude_unset=True)
    master_data.check_reference(db, HospitalModel, "hospital_id", data.get("hospital_id"))
    master_data.update_record(db, db_doctor, data, user, "doctors")
    db.commit()
    db.refresh(db_doctor)
    logger.info(f"Doctor '{db_doctor.name}' (ID: {doctor_id}) updated by user {user.username}")
    return ok(db_doctor, "Doctor updated successfully")


@router.delete("/{doctor_id}", response_model=ApiResponse[dict])
def delete_doctor(
    doctor_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("doctors", "delete")),
):
    db_doctor = _get_or_404(db, doctor_id)
    deactivated = master_data.retire_record(db, db_doctor, REFERENCES, user, "doctors", {"is_active": False})
    db.commit()
    if deactivated:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Doctor '{db_doctor.name}' has recorded utilizations. Status changed to inactive.",
        )
    return ok({"id": doctor_id}, "Doctor deleted successfully")
