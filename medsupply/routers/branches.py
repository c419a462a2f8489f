from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from medsupply.crud import master_data
from medsupply.database import get_db
from medsupply.models.branches import Branch as BranchModel, BranchContact as BranchContactModel
from medsupply.models.warehouses import Warehouse as WarehouseModel
from medsupply.schemas.branches import (
    Branch,
    BranchContact,
    BranchContactCreate,
    BranchContactUpdate,
    BranchCreate,
    BranchUpdate,
)
from medsupply.schemas.common import ApiResponse, Page, ok, paginate
from medsupply.utils.access import UserContext
from medsupply.utils.auth_utils import require_permission
from medsupply.utils.errors import FieldError, ValidationFailed

router = APIRouter(prefix="/branches", tags=["Branches"])
logger = logging.getLogger("branches")

REFERENCES = [(WarehouseModel, "branch_id")]
UPPERCASE_FIELDS = ("branch_code", "gst_number", "pan_number")


def _get_or_404(db: Session, branch_id: int):
    db_branch = db.query(BranchModel).filter(BranchModel.id == branch_id).first()
    if db_branch is None:
        raise HTTPException(status_code=404, detail="Branch not found")
    return db_branch


def _get_contact_or_404(db: Session, branch_id: int, contact_id: int):
    db_contact = (
        db.query(BranchContactModel)
        .filter(BranchContactModel.id == contact_id, BranchContactModel.branch_id == branch_id)
        .first()
    )
    if db_contact is None:
        raise HTTPException(status_code=404, detail="Contact not found")
    return db_contact


def _normalise(data: dict) -> dict:
    for key in UPPERCASE_FIELDS:
        if data.get(key):
            data[key] = data[key].strip().upper()
    if data.get("email"):
        data["email"] = data["email"].strip().lower()
    return data


def _check_email(field: str, value: Optional[str]) -> None:
    if value is not None and "@" not in value:
        raise ValidationFailed([FieldError(field, f"Invalid email address: {value}")])


@router.post("/", response_model=ApiResponse[Branch], status_code=status.HTTP_201_CREATED)
def create_branch(
    branch: BranchCreate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("branches", "create")),
):
    data = _normalise(branch.model_dump())
    _check_email("email", data["email"])
    master_data.check_unique(db, BranchModel, "gst_number", data["gst_number"])
    master_data.check_unique(db, BranchModel, "pan_number", data["pan_number"])
    master_data.check_unique(db, BranchModel, "branch_code", data.get("branch_code"))
    db_branch = master_data.create_record(db, BranchModel, data, user, "branches")
    db.commit()
    db.refresh(db_branch)
    logger.info(f"Branch '{db_branch.name}' created by user {user.username}")
    return ok(db_branch, "Branch created successfully")


@router.get("/", response_model=ApiResponse[Page[Branch]])
def read_branches(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("branches", "view")),
):
    query = db.query(BranchModel)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            BranchModel.name.ilike(pattern),
            BranchModel.branch_code.ilike(pattern),
            BranchModel.gst_number.ilike(pattern),
            BranchModel.city.ilike(pattern),
        ))
    if is_active is not None:
        query = query.filter(BranchModel.is_active == is_active)
    rows, pagination = paginate(query.order_by(BranchModel.name), page, limit)
    return ok({"items": rows, "pagination": pagination})


@router.get("/{branch_id}", response_model=ApiResponse[Branch])
def read_branch(
    branch_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("branches", "view")),
):
    return ok(_get_or_404(db, branch_id))


@router.patch("/{branch_id}", response_model=ApiResponse[Branch])
def update_branch(
    branch_id: int,
    branch: BranchUpdate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("branches", "update")),
):
    db_branch = _get_or_404(db, branch_id)
    data = _normalise(branch.model_dump(exclude_unset=True))
    _check_email("email", data.get("email"))
    master_data.check_unique(db, BranchModel, "gst_number", data.get("gst_number"), exclude_id=branch_id)
    master_data.check_unique(db, BranchModel, "pan_number", data.get("pan_number"), exclude_id=branch_id)
    master_data.check_unique(db, BranchModel, "branch_code", data.get("branch_code"), exclude_id=branch_id)
    master_data.update_record(db, db_branch, data, user, "branches")
    db.commit()
    db.refresh(db_branch)
    logger.info(f"Branch '{db_branch.name}' (ID: {branch_id}) updated by user {user.username}")
    return ok(db_branch, "Branch updated successfully")


@router.delete("/{branch_id}", response_model=ApiResponse[dict])
def delete_branch(
    branch_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("branches", "delete")),
):
    """Contacts go with the branch; a branch that still has warehouses is only switched off."""
    db_branch = _get_or_404(db, branch_id)
    deactivated = master_data.retire_record(db, db_branch, REFERENCES, user, "branches", {"is_active": False})
    db.commit()
    if deactivated:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Branch '{db_branch.name}' has warehouses. Status changed to inactive.",
        )
    return ok({"id": branch_id}, "Branch deleted successfully")


@router.get("/{branch_id}/contacts", response_model=ApiResponse[List[BranchContact]])
def read_branch_contacts(
    branch_id: int,
    include_warehouses: bool = True,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("branches", "view")),
):
    _get_or_404(db, branch_id)
    query = db.query(BranchContactModel).filter(BranchContactModel.branch_id == branch_id)
    if not include_warehouses:
        query = query.filter(BranchContactModel.warehouse_id.is_(None))
    if not include_inactive:
        query = query.filter(BranchContactModel.is_active == True)
    contacts = query.order_by(
        BranchContactModel.warehouse_id, BranchContactModel.department, BranchContactModel.contact_person_name
    ).all()
    return ok(contacts)


@router.post("/{branch_id}/contacts", response_model=ApiResponse[BranchContact], status_code=status.HTTP_201_CREATED)
def create_branch_contact(
    branch_id: int,
    contact: BranchContactCreate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("branches", "create")),
):
    _get_or_404(db, branch_id)
    _check_email("email_address", contact.email_address)
    if contact.warehouse_id is not None:
        belongs = (
            db.query(WarehouseModel.id)
            .filter(WarehouseModel.id == contact.warehouse_id, WarehouseModel.branch_id == branch_id)
            .first()
        )
        if belongs is None:
            raise ValidationFailed([FieldError("warehouse_id", "Warehouse not found or does not belong to this branch")])
    data = contact.model_dump()
    data["email_address"] = data["email_address"].strip().lower()
    db_contact = master_data.create_record(db, BranchContactModel, {**data, "branch_id": branch_id}, user,
                                           "branch_contacts")
    db.commit()
    db.refresh(db_contact)
    logger.info(f"Contact '{db_contact.contact_person_name}' added to branch {branch_id} by user {user.username}")
    return ok(db_contact, "Contact created successfully")


@router.patch("/{branch_id}/contacts/{contact_id}", response_model=ApiResponse[BranchContact])
def update_branch_contact(
    branch_id: int,
    contact_id: int,
    contact: BranchContactUpdate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("branches", "update")),
):
    db_contact = _get_contact_or_404(db, branch_id, contact_id)
    data = contact.model_dump(exclude_unset=True)
    _check_email("email_address", data.get("email_address"))
    if data.get("email_address"):
        data["email_address"] = data["email_address"].strip().lower()
    master_data.update_record(db, db_contact, data, user, "branch_contacts")
    db.commit()
    db.refresh(db_contact)
    logger.info(f"Contact {contact_id} of branch {branch_id} updated by user {user.username}")
    return ok(db_contact, "Contact updated successfully")


@router.delete("/{branch_id}/contacts/{contact_id}", response_model=ApiResponse[dict])
def delete_branch_contact(
    branch_id: int,
    contact_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("branches", "delete")),
):
    db_contact = _get_contact_or_404(db, branch_id, contact_id)
    master_data.delete_record(db, db_contact, user, "branch_contacts")
    db.commit()
    logger.info(f"Contact {contact_id} removed from branch {branch_id} by user {user.username}")
    return ok({"id": contact_id}, "Contact deleted successfully")
