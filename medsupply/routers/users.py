from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from medsupply.crud import master_data
from medsupply.crud.permissions import get_permissions_by_ids
from medsupply.database import get_db
from medsupply.models.users import User as UserModel
from medsupply.schemas.common import ApiResponse, Page, ok, paginate
from medsupply.schemas.users import CurrentUser, User, UserCreate, UserPermissionsUpdate, UserUpdate
from medsupply.utils.access import (
    MODULE_PERMISSIONS,
    UserContext,
    can_access_module,
    can_manage_inventory,
    can_manage_warehouse_approvals,
    can_perform_qc,
    is_admin,
    is_inventory_manager,
    is_qc_manager,
    is_warehouse_manager,
)
from medsupply.utils.auth_utils import get_user_context, require_permission

router = APIRouter(prefix="/users", tags=["Users"])
logger = logging.getLogger("users")


def _get_or_404(db: Session, user_id: int):
    db_user = db.query(UserModel).filter(UserModel.id == user_id).first()
    if db_user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return db_user


def _permissions_or_404(db: Session, ids):
    try:
        return get_permissions_by_ids(db, ids)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/me", response_model=ApiResponse[CurrentUser])
def read_current_user(user: UserContext = Depends(get_user_context)):
    """The caller's permissions, the modules they may open and their manager roles."""
    return ok({
        "user_id": user.user_id,
        "username": user.username,
        "role": user.role,
        "permissions": sorted(user.permissions),
        "modules": [module for module in MODULE_PERMISSIONS if can_access_module(user.permissions, module)],
        "capabilities": {
            "is_admin": is_admin(user),
            "is_qc_manager": is_qc_manager(user),
            "is_warehouse_manager": is_warehouse_manager(user),
            "is_inventory_manager": is_inventory_manager(user),
            "can_perform_qc": can_perform_qc(user),
            "can_manage_warehouse_approvals": can_manage_warehouse_approvals(user),
            "can_manage_inventory": can_manage_inventory(user),
        },
    })


@router.post("/", response_model=ApiResponse[User], status_code=status.HTTP_201_CREATED)
def create_user(
    user_in: UserCreate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("users", "create")),
):
    master_data.check_unique(db, UserModel, "username", user_in.username)
    permissions = _permissions_or_404(db, user_in.permission_ids)
    db_user = master_data.create_record(db, UserModel, user_in.model_dump(exclude={"permission_ids"}), user, "users")
    db_user.permissions = permissions
    db.commit()
    db.refresh(db_user)
    logger.info(f"User '{db_user.username}' created by user {user.username}")
    return ok(db_user, "User created successfully")


@router.get("/", response_model=ApiResponse[Page[User]])
def read_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("users", "view")),
):
    query = db.query(UserModel)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(UserModel.username.ilike(pattern), UserModel.name.ilike(pattern)))
    if role:
        query = query.filter(UserModel.role == role)
    if is_active is not None:
        query = query.filter(UserModel.is_active == is_active)
    rows, pagination = paginate(query.order_by(UserModel.username), page, limit)
    return ok({"items": rows, "pagination": pagination})


@router.get("/{user_id}", response_model=ApiResponse[User])
def read_user(
    user_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("users", "view")),
):
    return ok(_get_or_404(db, user_id))


@router.patch("/{user_id}", response_model=ApiResponse[User])
def update_user(
    user_id: int,
    user_in: UserUpdate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("users", "update")),
):
    db_user = _get_or_404(db, user_id)
    master_data.update_record(db, db_user, user_in.model_dump(exclude_unset=True), user, "users")
    db.commit()
    db.refresh(db_user)
    logger.info(f"User '{db_user.username}' (ID: {user_id}) updated by user {user.username}")
    return ok(db_user, "User updated successfully")


@router.put("/{user_id}/permissions", response_model=ApiResponse[User])
def set_user_permissions(
    user_id: int,
    body: UserPermissionsUpdate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("permissions", "manage")),
):
    """Replace the user's direct permissions."""
    db_user = _get_or_404(db, user_id)
    old_keys = db_user.permission_keys
    db_user.permissions = _permissions_or_404(db, body.permission_ids)
    db_user.updated_by = user.username
    db.commit()
    db.refresh(db_user)
    logger.info(
        f"Permissions of '{db_user.username}' changed from {old_keys} to {db_user.permission_keys} "
        f"by user {user.username}"
    )
    return ok(db_user, "Permissions updated successfully")
