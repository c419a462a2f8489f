from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from medsupply.crud import master_data
from medsupply.crud.permissions import get_permission, seed_permissions
from medsupply.database import get_db
from medsupply.models.permissions import Permission as PermissionModel
from medsupply.schemas.common import ApiResponse, ok
from medsupply.schemas.permissions import Permission, PermissionCreate, PermissionUpdate
from medsupply.utils.access import UserContext
from medsupply.utils.auth_utils import require_permission
from medsupply.utils.errors import FieldError, ValidationFailed

router = APIRouter(prefix="/permissions", tags=["Permissions"])
logger = logging.getLogger("permissions")


@router.get("/", response_model=ApiResponse[List[Permission]])
def read_permissions(
    resource: Optional[str] = None,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("permissions", "view")),
):
    query = db.query(PermissionModel)
    if resource:
        query = query.filter(PermissionModel.resource == resource)
    return ok(query.order_by(PermissionModel.resource, PermissionModel.action).all())


@router.post("/", response_model=ApiResponse[Permission], status_code=status.HTTP_201_CREATED)
def create_permission(
    permission: PermissionCreate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("permissions", "manage")),
):
    master_data.check_unique(db, PermissionModel, "name", permission.name)
    existing = db.query(PermissionModel).filter(
        PermissionModel.resource == permission.resource,
        PermissionModel.action == permission.action,
    ).first()
    if existing is not None:
        raise ValidationFailed([FieldError("action", f"{existing.key} already exists")])
    db_permission = master_data.create_record(db, PermissionModel, permission.model_dump(), user, "permissions")
    db.commit()
    db.refresh(db_permission)
    logger.info(f"Permission '{db_permission.key}' created by user {user.username}")
    return ok(db_permission, "Permission created successfully")


@router.post("/seed", response_model=ApiResponse[dict])
def seed_permission_catalogue(
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("permissions", "manage")),
):
    """Insert every permission the service checks that is not in the table yet."""
    added = seed_permissions(db)
    db.commit()
    logger.info(f"{added} permissions seeded by user {user.username}")
    return ok({"added": added}, f"{added} permission(s) added")


@router.patch("/{permission_id}", response_model=ApiResponse[Permission])
def update_permission(
    permission_id: int,
    permission: PermissionUpdate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("permissions", "manage")),
):
    db_permission = get_permission(db, permission_id)
    if db_permission is None:
        raise HTTPException(status_code=404, detail="Permission not found")
    data = permission.model_dump(exclude_unset=True)
    master_data.check_unique(db, PermissionModel, "name", data.get("name"), exclude_id=permission_id)
    master_data.update_record(db, db_permission, data, user, "permissions")
    db.commit()
    db.refresh(db_permission)
    return ok(db_permission, "Permission updated successfully")
