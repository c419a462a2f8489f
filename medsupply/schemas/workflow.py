from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime
from medsupply.utils.workflow_table import Action, POStatus, Stage


class StageInfo(BaseModel):
    code: Stage
    name: str
    description: str
    status: POStatus
    is_terminal: bool
    actions: List[Action]


class Transition(BaseModel):
    from_stage: Stage
    action: Action
    to_stage: Optional[Stage] = None
    permission: str
    requires_remarks: bool


class WorkflowGraph(BaseModel):
    nodes: List[StageInfo]
    edges: List[Transition]


class StagePermissionAssign(BaseModel):
    user_id: int
    stage_code: Stage
    permission_ids: List[int] = Field(..., min_length=1)
    expiry_date: Optional[datetime] = None
    remarks: Optional[str] = None


class StagePermissionRevoke(BaseModel):
    user_id: int
    stage_code: Stage
    # None revokes the whole grant
    permission_ids: Optional[List[int]] = None


class StagePermission(BaseModel):
    id: int
    user_id: int
    stage_code: str
    assigned_by: Optional[str] = None
    expiry_date: Optional[datetime] = None
    is_active: bool
    remarks: Optional[str] = None
    permission_keys: List[str] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WorkflowStatistics(BaseModel):
    total: int
    by_stage: Dict[str, int]
    by_status: Dict[str, int]
