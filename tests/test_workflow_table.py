import pytest

from medsupply.utils.workflow_table import (
    STAGE_INFO,
    STAGE_STATUS,
    TRANSITIONS,
    Action,
    POStatus,
    Stage,
    all_permissions,
    available_actions,
    can_perform_action,
    next_stage,
    required_permission,
    requires_remarks,
    stage_actions,
    status_for,
    to_mermaid,
)


@pytest.mark.parametrize("stage, action, expected", [
    ("DRAFT", "approve", Stage.PENDING_APPROVAL),
    ("PENDING_APPROVAL", "approve", Stage.APPROVED_L1),
    ("PENDING_APPROVAL", "return", Stage.DRAFT),
    ("APPROVED_L1", "approve", Stage.APPROVED_FINAL),
    ("APPROVED_L1", "return", Stage.PENDING_APPROVAL),
    ("APPROVED_FINAL", "approve", Stage.ORDERED),
    ("ORDERED", "receive", Stage.PARTIAL_RECEIVED),
    ("PARTIAL_RECEIVED", "receive", Stage.RECEIVED),
    ("RECEIVED", "qc_check", Stage.QC_PENDING),
    ("QC_PENDING", "approve", Stage.QC_PASSED),
    ("QC_PENDING", "reject", Stage.QC_FAILED),
    ("QC_PASSED", "complete", Stage.COMPLETED),
    ("QC_FAILED", "return", Stage.ORDERED),
    ("QC_FAILED", "cancel", Stage.CANCELLED),
])
def test_next_stage_follows_table(stage, action, expected):
    assert next_stage(stage, action) == expected


@pytest.mark.parametrize("stage, action", [
    ("DRAFT", "edit"),
    ("APPROVED_FINAL", "edit"),
    ("DRAFT", "receive"),
    ("ORDERED", "approve"),
    ("COMPLETED", "approve"),
    ("CANCELLED", "return"),
    ("NOWHERE", "approve"),
    ("DRAFT", "teleport"),
])
def test_unlisted_pairs_do_not_transition(stage, action):
    assert next_stage(stage, action) is None


def test_terminal_stages_have_no_actions():
    assert stage_actions(Stage.COMPLETED) == []
    assert stage_actions(Stage.CANCELLED) == []
    assert stage_actions("bogus") == []


def test_required_permission():
    assert required_permission("DRAFT", "approve") == "purchase_orders.create"
    assert required_permission(Stage.APPROVED_L1, Action.APPROVE) == "po_workflow.approve_level2"
    assert required_permission("ORDERED", "cancel") is None


def test_can_perform_action_needs_permission():
    assert can_perform_action("PENDING_APPROVAL", "approve", {"po_workflow.approve_level1"})
    assert not can_perform_action("PENDING_APPROVAL", "approve", {"po_workflow.approve_level2"})
    assert not can_perform_action("PENDING_APPROVAL", "approve", [])
    # Holding a permission does not make an unlisted action available
    assert not can_perform_action("ORDERED", "approve", all_permissions())


def test_available_actions_filters_by_permission():
    permissions = {"po_workflow.approve_level1", "po_workflow.return"}
    assert available_actions("PENDING_APPROVAL", permissions) == [Action.APPROVE, Action.RETURN]
    assert available_actions("PENDING_APPROVAL", set()) == []
    assert available_actions("DRAFT", {"purchase_orders.update"}) == [Action.EDIT]


def test_status_for_rejection_reads_rejected():
    assert status_for(Stage.CANCELLED, Action.REJECT) == POStatus.REJECTED
    assert status_for(Stage.CANCELLED, Action.CANCEL) == POStatus.CANCELLED
    assert status_for(Stage.APPROVED_L1) == POStatus.APPROVED
    assert status_for("QC_FAILED", "reject") == POStatus.QC_FAILED


def test_remarks_required_for_reject_return_cancel():
    assert requires_remarks("reject") and requires_remarks("return") and requires_remarks(Action.CANCEL)
    assert not requires_remarks("approve")
    assert not requires_remarks("bogus")


def test_every_stage_is_described():
    assert set(STAGE_STATUS) == set(Stage)
    assert set(STAGE_INFO) == set(Stage)
    assert {stage for stage, _ in TRANSITIONS} | {Stage.COMPLETED, Stage.CANCELLED} == set(Stage)


def test_mermaid_lists_moving_transitions_only():
    diagram = to_mermaid()
    assert diagram.startswith("stateDiagram-v2")
    assert "DRAFT --> PENDING_APPROVAL: approve" in diagram
    assert "QC_FAILED --> ORDERED: return" in diagram
    assert ": edit" not in diagram
