from typing import List, Optional, Set

from sqlalchemy.orm import Session

from medsupply.models.permissions import Permission
from medsupply.models.stage_permissions import StagePermission
from medsupply.models.audit_mixin import now_local, to_local
from medsupply.utils.access import UserContext
from medsupply.utils.workflow_table import Stage


def get_stage_permission(db: Session, user_id: int, stage_code: str) -> Optional[StagePermission]:
    return db.query(StagePermission).filter(
        StagePermission.user_id == user_id,
        StagePermission.stage_code == stage_code,
    ).first()


def get_stage_permissions(db: Session, stage_code: Optional[str] = None, user_id: Optional[int] = None,
                          active_only: bool = False) -> List[StagePermission]:
    query = db.query(StagePermission)
    if stage_code:
        query = query.filter(StagePermission.stage_code == stage_code)
    if user_id:
        query = query.filter(StagePermission.user_id == user_id)
    if active_only:
        query = query.filter(StagePermission.is_active == True)
    grants = query.order_by(StagePermission.id).all()
    if active_only:
        grants = [grant for grant in grants if grant.is_valid()]
    return grants


def stage_permission_keys(db: Session, user_id: int, stage) -> Set[str]:
    """Keys granted to a user for one stage; empty when the grant is inactive or expired."""
    grant = get_stage_permission(db, user_id, Stage(stage).value)
    if grant is None or not grant.is_valid():
        return set()
    return set(grant.permission_keys)


def effective_context(db: Session, ctx: UserContext, stage) -> UserContext:
    """The caller's direct permissions plus whatever they were granted for ``stage``."""
    extra = stage_permission_keys(db, ctx.user_id, stage)
    return ctx.with_permissions(extra) if extra else ctx


def assign_stage_permissions(db: Session, user_id: int, stage_code: str, permissions: List[Permission],
                             assigned_by: str, expiry_date=None, remarks: Optional[str] = None) -> StagePermission:
    """Create or replace a user's grant for a stage."""
    grant = get_stage_permission(db, user_id, stage_code)
    if grant is None:
        grant = StagePermission(user_id=user_id, stage_code=stage_code, created_by=assigned_by)
        db.add(grant)
    grant.permissions = list(permissions)
    grant.assigned_by = assigned_by
    grant.expiry_date = to_local(expiry_date) if expiry_date is not None else None
    grant.remarks = remarks
    grant.is_active = True
    grant.updated_by = assigned_by
    db.flush()
    return grant


def revoke_stage_permissions(db: Session, grant: StagePermission, revoked_by: str,
                             permission_ids: Optional[List[int]] = None) -> StagePermission:
    """Drop specific permissions from a grant, or deactivate it entirely."""
    if permission_ids:
        grant.permissions = [p for p in grant.permissions if p.id not in set(permission_ids)]
        if not grant.permissions:
            grant.is_active = False
    else:
        grant.is_active = False
    grant.updated_by = revoked_by
    db.flush()
    return grant


def deactivate_expired(db: Session, at=None) -> int:
    at = at or now_local()
    expired = [
        grant for grant in db.query(StagePermission).filter(
            StagePermission.is_active == True,
            StagePermission.expiry_date.isnot(None),
        ).all()
        if not grant.is_valid(at)
    ]
    for grant in expired:
        grant.is_active = False
        grant.updated_by = "system"
    db.flush()
    return len(expired)
