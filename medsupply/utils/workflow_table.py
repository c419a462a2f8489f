"""Purchase order workflow stage table.

A fixed mapping of (stage, action) to the resulting stage and the permission
string needed to take that action. The server consults this table on every
transition request; any pair not listed here is not a transition.
"""
import enum
from typing import Dict, Iterable, List, Optional, Tuple, Union


class Stage(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED_L1 = "APPROVED_L1"
    APPROVED_FINAL = "APPROVED_FINAL"
    ORDERED = "ORDERED"
    PARTIAL_RECEIVED = "PARTIAL_RECEIVED"
    RECEIVED = "RECEIVED"
    QC_PENDING = "QC_PENDING"
    QC_PASSED = "QC_PASSED"
    QC_FAILED = "QC_FAILED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Action(str, enum.Enum):
    EDIT = "edit"
    APPROVE = "approve"
    REJECT = "reject"
    RETURN = "return"
    CANCEL = "cancel"
    RECEIVE = "receive"
    QC_CHECK = "qc_check"
    COMPLETE = "complete"


class POStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    ORDERED = "ordered"
    PARTIAL_RECEIVED = "partial_received"
    RECEIVED = "received"
    QC_PENDING = "qc_pending"
    QC_PASSED = "qc_passed"
    QC_FAILED = "qc_failed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# (stage, action) -> (next stage or None for in-place actions, permission)
TRANSITIONS: Dict[Tuple[Stage, Action], Tuple[Optional[Stage], str]] = {
    (Stage.DRAFT, Action.EDIT): (None, "purchase_orders.update"),
    (Stage.DRAFT, Action.APPROVE): (Stage.PENDING_APPROVAL, "purchase_orders.create"),
    (Stage.DRAFT, Action.CANCEL): (Stage.CANCELLED, "purchase_orders.delete"),

    (Stage.PENDING_APPROVAL, Action.APPROVE): (Stage.APPROVED_L1, "po_workflow.approve_level1"),
    (Stage.PENDING_APPROVAL, Action.REJECT): (Stage.CANCELLED, "po_workflow.reject"),
    (Stage.PENDING_APPROVAL, Action.RETURN): (Stage.DRAFT, "po_workflow.return"),

    (Stage.APPROVED_L1, Action.APPROVE): (Stage.APPROVED_FINAL, "po_workflow.approve_level2"),
    (Stage.APPROVED_L1, Action.REJECT): (Stage.CANCELLED, "po_workflow.reject"),
    (Stage.APPROVED_L1, Action.RETURN): (Stage.PENDING_APPROVAL, "po_workflow.return"),

    (Stage.APPROVED_FINAL, Action.APPROVE): (Stage.ORDERED, "po_workflow.approve_final"),
    (Stage.APPROVED_FINAL, Action.EDIT): (None, "purchase_orders.update"),
    (Stage.APPROVED_FINAL, Action.CANCEL): (Stage.CANCELLED, "po_workflow.cancel"),

    (Stage.ORDERED, Action.RECEIVE): (Stage.PARTIAL_RECEIVED, "po_receiving.receive"),
    (Stage.PARTIAL_RECEIVED, Action.RECEIVE): (Stage.RECEIVED, "po_receiving.receive"),

    (Stage.RECEIVED, Action.QC_CHECK): (Stage.QC_PENDING, "po_receiving.qc_check"),

    (Stage.QC_PENDING, Action.APPROVE): (Stage.QC_PASSED, "po_receiving.qc_approve"),
    (Stage.QC_PENDING, Action.REJECT): (Stage.QC_FAILED, "po_receiving.qc_reject"),

    (Stage.QC_PASSED, Action.COMPLETE): (Stage.COMPLETED, "po_workflow.complete"),

    (Stage.QC_FAILED, Action.RETURN): (Stage.ORDERED, "po_workflow.return"),
    (Stage.QC_FAILED, Action.CANCEL): (Stage.CANCELLED, "po_workflow.cancel"),
}

STAGE_STATUS: Dict[Stage, POStatus] = {
    Stage.DRAFT: POStatus.DRAFT,
    Stage.PENDING_APPROVAL: POStatus.PENDING_APPROVAL,
    Stage.APPROVED_L1: POStatus.APPROVED,
    Stage.APPROVED_FINAL: POStatus.APPROVED,
    Stage.ORDERED: POStatus.ORDERED,
    Stage.PARTIAL_RECEIVED: POStatus.PARTIAL_RECEIVED,
    Stage.RECEIVED: POStatus.RECEIVED,
    Stage.QC_PENDING: POStatus.QC_PENDING,
    Stage.QC_PASSED: POStatus.QC_PASSED,
    Stage.QC_FAILED: POStatus.QC_FAILED,
    Stage.COMPLETED: POStatus.COMPLETED,
    Stage.CANCELLED: POStatus.CANCELLED,
}

# Stage catalogue shown to clients: (display name, description)
STAGE_INFO: Dict[Stage, Tuple[str, str]] = {
    Stage.DRAFT: ("Draft", "Purchase order is being prepared"),
    Stage.PENDING_APPROVAL: ("Pending Approval", "Waiting for first level approval"),
    Stage.APPROVED_L1: ("Level 1 Approved", "Approved at first level, waiting for second level"),
    Stage.APPROVED_FINAL: ("Final Approved", "Fully approved, ready to be ordered"),
    Stage.ORDERED: ("Ordered", "Order placed with the principal"),
    Stage.PARTIAL_RECEIVED: ("Partially Received", "Some products received"),
    Stage.RECEIVED: ("Received", "All products received"),
    Stage.QC_PENDING: ("QC Pending", "Waiting for quality check"),
    Stage.QC_PASSED: ("QC Passed", "Quality check passed"),
    Stage.QC_FAILED: ("QC Failed", "Quality check failed"),
    Stage.COMPLETED: ("Completed", "Purchase order completed"),
    Stage.CANCELLED: ("Cancelled", "Purchase order cancelled"),
}

TERMINAL_STAGES = (Stage.COMPLETED, Stage.CANCELLED)

REMARKS_REQUIRED = (Action.REJECT, Action.RETURN, Action.CANCEL)

StageLike = Union[Stage, str]
ActionLike = Union[Action, str]


def _coerce(stage: StageLike, action: ActionLike) -> Optional[Tuple[Stage, Action]]:
    try:
        return Stage(stage), Action(action)
    except ValueError:
        return None


def next_stage(stage: StageLike, action: ActionLike) -> Optional[Stage]:
    """Stage reached by taking ``action`` at ``stage``, or None when not a transition."""
    key = _coerce(stage, action)
    if key is None or key not in TRANSITIONS:
        return None
    return TRANSITIONS[key][0]


def required_permission(stage: StageLike, action: ActionLike) -> Optional[str]:
    key = _coerce(stage, action)
    if key is None or key not in TRANSITIONS:
        return None
    return TRANSITIONS[key][1]


def stage_actions(stage: StageLike) -> List[Action]:
    """Every action listed for a stage, regardless of who is asking."""
    try:
        stage = Stage(stage)
    except ValueError:
        return []
    return [action for (from_stage, action) in TRANSITIONS if from_stage == stage]


def can_perform_action(stage: StageLike, action: ActionLike, permissions: Iterable[str]) -> bool:
    permission = required_permission(stage, action)
    if permission is None:
        return False
    return permission in set(permissions)


def available_actions(stage: StageLike, permissions: Iterable[str]) -> List[Action]:
    granted = set(permissions)
    return [action for action in stage_actions(stage) if required_permission(stage, action) in granted]


def status_for(stage: StageLike, action: Optional[ActionLike] = None) -> POStatus:
    """Status string that accompanies a stage; a rejection into CANCELLED reads 'rejected'."""
    stage = Stage(stage)
    if stage == Stage.CANCELLED and action is not None and Action(action) == Action.REJECT:
        return POStatus.REJECTED
    return STAGE_STATUS[stage]


def requires_remarks(action: ActionLike) -> bool:
    try:
        return Action(action) in REMARKS_REQUIRED
    except ValueError:
        return False


def all_permissions() -> List[str]:
    return sorted({permission for _, permission in TRANSITIONS.values()})


def to_mermaid() -> str:
    lines = ["stateDiagram-v2"]
    for (from_stage, action), (to_stage, _) in TRANSITIONS.items():
        if to_stage is not None:
            lines.append(f"    {from_stage.value} --> {to_stage.value}: {action.value}")
    return "\n".join(lines)
