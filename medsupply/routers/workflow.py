from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from medsupply.crud import stage_permissions as crud_stage
from medsupply.crud.permissions import get_permissions_by_ids
from medsupply.database import get_db
from medsupply.models.purchase_orders import PurchaseOrder as PurchaseOrderModel
from medsupply.models.users import User as UserModel
from medsupply.schemas.common import ApiResponse, ok
from medsupply.schemas.workflow import (
    StageInfo,
    StagePermission,
    StagePermissionAssign,
    StagePermissionRevoke,
    Transition,
    WorkflowGraph,
    WorkflowStatistics,
)
from medsupply.utils.access import UserContext
from medsupply.utils.auth_utils import require_permission
from medsupply.utils.workflow_table import (
    STAGE_INFO,
    STAGE_STATUS,
    TERMINAL_STAGES,
    TRANSITIONS,
    Stage,
    requires_remarks,
    stage_actions,
    to_mermaid,
)

router = APIRouter(prefix="/workflow", tags=["Workflow"])
logger = logging.getLogger("workflow")


def _stages() -> List[dict]:
    return [
        {
            "code": stage,
            "name": STAGE_INFO[stage][0],
            "description": STAGE_INFO[stage][1],
            "status": STAGE_STATUS[stage],
            "is_terminal": stage in TERMINAL_STAGES,
            "actions": stage_actions(stage),
        }
        for stage in Stage
    ]


def _transitions(stage: Optional[Stage] = None) -> List[dict]:
    return [
        {
            "from_stage": from_stage,
            "action": action,
            "to_stage": to_stage,
            "permission": permission,
            "requires_remarks": requires_remarks(action),
        }
        for (from_stage, action), (to_stage, permission) in TRANSITIONS.items()
        if stage is None or from_stage == stage
    ]


@router.get("/stages", response_model=ApiResponse[List[StageInfo]])
def read_stages(user: UserContext = Depends(require_permission("workflow", "view"))):
    return ok(_stages())


@router.get("/transitions", response_model=ApiResponse[List[Transition]])
def read_transitions(
    stage: Optional[Stage] = None,
    user: UserContext = Depends(require_permission("workflow", "view")),
):
    return ok(_transitions(stage))


@router.get("/visualization")
def read_visualization(
    format: str = Query("json", pattern="^(json|mermaid)$"),
    user: UserContext = Depends(require_permission("workflow", "view")),
):
    """The stage graph as nodes/edges, or as a Mermaid state diagram."""
    if format == "mermaid":
        return ok({"format": "mermaid", "diagram": to_mermaid()})
    return ok(WorkflowGraph(nodes=_stages(), edges=_transitions()).model_dump(mode="json"))


@router.get("/statistics", response_model=ApiResponse[WorkflowStatistics])
def read_statistics(
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("workflow", "view")),
):
    by_stage = dict(
        db.query(PurchaseOrderModel.current_stage, func.count(PurchaseOrderModel.id))
        .group_by(PurchaseOrderModel.current_stage).all()
    )
    by_status = dict(
        db.query(PurchaseOrderModel.status, func.count(PurchaseOrderModel.id))
        .group_by(PurchaseOrderModel.status).all()
    )
    return ok({
        "total": sum(by_stage.values()),
        "by_stage": {getattr(k, "value", k): v for k, v in by_stage.items()},
        "by_status": {getattr(k, "value", k): v for k, v in by_status.items()},
    })


@router.get("/stage-permissions", response_model=ApiResponse[List[StagePermission]])
def read_stage_permissions(
    stage_code: Optional[Stage] = None,
    user_id: Optional[int] = None,
    active_only: bool = False,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("workflow", "view")),
):
    return ok(crud_stage.get_stage_permissions(db, stage_code.value if stage_code else None, user_id, active_only))


@router.post("/stage-permissions", response_model=ApiResponse[StagePermission])
def assign_stage_permissions(
    grant: StagePermissionAssign,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("workflow", "manage")),
):
    """Give a user extra permissions that apply only while an order sits at one stage."""
    target = db.query(UserModel).filter(UserModel.id == grant.user_id).first()
    if target is None:
        raise HTTPException(status_code=404, detail="User not found")
    try:
        permissions = get_permissions_by_ids(db, grant.permission_ids)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    db_grant = crud_stage.assign_stage_permissions(
        db, target.id, grant.stage_code.value, permissions, user.username, grant.expiry_date, grant.remarks,
    )
    db.commit()
    db.refresh(db_grant)
    logger.info(
        f"Stage {grant.stage_code.value} permissions {db_grant.permission_keys} assigned to "
        f"{target.username} by user {user.username}"
    )
    return ok(db_grant, "Stage permissions assigned")


@router.post("/stage-permissions/revoke", response_model=ApiResponse[StagePermission])
def revoke_stage_permissions(
    revoke: StagePermissionRevoke,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("workflow", "manage")),
):
    db_grant = crud_stage.get_stage_permission(db, revoke.user_id, revoke.stage_code.value)
    if db_grant is None:
        raise HTTPException(status_code=404, detail="Stage permission not found")
    crud_stage.revoke_stage_permissions(db, db_grant, user.username, revoke.permission_ids)
    db.commit()
    db.refresh(db_grant)
    logger.info(f"Stage {revoke.stage_code.value} permissions of user {revoke.user_id} revoked by user {user.username}")
    return ok(db_grant, "Stage permissions revoked")
