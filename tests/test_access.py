import dataclasses

import pytest

from medsupply.utils.access import (
    INVENTORY_MANAGER_CHECKS,
    QC_MANAGER_CHECKS,
    UserContext,
    can_access_module,
    can_manage_inventory,
    can_manage_warehouse_approvals,
    can_perform_qc,
    has_all_permissions,
    has_any_permission,
    has_permission,
    is_admin,
    is_inventory_manager,
    is_qc_manager,
    is_warehouse_manager,
    resource_actions,
)

PERMISSIONS = {"purchase_orders.view", "purchase_orders.create", "inventory.view"}


def test_has_permission():
    assert has_permission(PERMISSIONS, "purchase_orders", "create")
    assert not has_permission(PERMISSIONS, "purchase_orders", "delete")
    assert not has_permission(set(), "inventory", "view")


def test_empty_check_lists_are_vacuous():
    assert has_all_permissions(PERMISSIONS, []) is True
    assert has_any_permission(PERMISSIONS, []) is False


def test_all_and_any():
    checks = [("purchase_orders", "view"), ("purchase_orders", "delete")]
    assert not has_all_permissions(PERMISSIONS, checks)
    assert has_any_permission(PERMISSIONS, checks)


def test_resource_actions():
    assert resource_actions(PERMISSIONS, "purchase_orders") == ["create", "view"]
    assert resource_actions(PERMISSIONS, "users") == []


def test_module_access():
    assert can_access_module(PERMISSIONS, "inventory")
    assert not can_access_module(PERMISSIONS, "quality_control")
    assert not can_access_module(PERMISSIONS, "no_such_module")


def test_manager_roles_match_by_role_or_permissions():
    by_role = UserContext(1, "qc", role="qc_manager")
    by_permissions = UserContext(2, "lead", permissions=frozenset(f"{r}.{a}" for r, a in QC_MANAGER_CHECKS))
    partial = UserContext(3, "half", permissions=frozenset({"quality_control.approve"}))

    assert is_qc_manager(by_role)
    assert is_qc_manager(by_permissions)
    assert not is_qc_manager(partial)
    assert not is_warehouse_manager(by_role)
    assert is_warehouse_manager(UserContext(4, "wm", role="warehouse_manager"))
    assert is_inventory_manager(UserContext(5, "im", permissions=frozenset(
        f"{r}.{a}" for r, a in INVENTORY_MANAGER_CHECKS
    )))


def test_functional_checks():
    ctx = UserContext(1, "clerk", permissions=frozenset({
        "quality_control.update", "warehouse_approval.submit", "inventory.reserve",
    }))
    assert can_perform_qc(ctx)
    assert can_manage_warehouse_approvals(ctx)
    assert can_manage_inventory(ctx)
    assert not can_perform_qc(UserContext(2, "viewer", permissions=frozenset({"quality_control.view"})))


def test_admin_is_a_role_not_a_permission():
    assert is_admin(UserContext(1, "root", role="admin"))
    assert is_admin(UserContext(1, "root", role="super_admin"))
    assert not is_admin(UserContext(2, "clerk", permissions=frozenset({"users.create"})))


def test_user_context_is_immutable():
    ctx = UserContext(1, "clerk", permissions=frozenset({"inventory.view"}))
    extended = ctx.with_permissions({"inventory.adjust"})

    assert extended.has_permission("inventory", "adjust")
    assert not ctx.has_permission("inventory", "adjust")
    with pytest.raises(dataclasses.FrozenInstanceError):
        ctx.role = "admin"
