"""Permission predicates.

Permissions are flat "resource.action" strings. Every predicate takes the
permission set (or a UserContext) explicitly; nothing here reads request or
global state.
"""
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple

PermissionCheck = Tuple[str, str]

ADMIN_ROLES = ("admin", "super_admin")

MODULE_PERMISSIONS = {
    "dashboard": ["dashboard.view"],
    "purchase_orders": ["purchase_orders.view"],
    "invoice_receiving": ["invoice_receiving.view"],
    "quality_control": ["quality_control.view"],
    "warehouse_approval": ["warehouse_approval.view"],
    "inventory": ["inventory.view"],
    "products": ["products.view"],
    "categories": ["categories.view"],
    "principals": ["principals.view"],
    "branches": ["branches.view"],
    "warehouses": ["warehouses.view"],
    "doctors": ["doctors.view"],
    "hospitals": ["hospitals.view"],
    "portfolios": ["portfolios.view"],
    "users": ["users.view"],
    "permissions": ["permissions.view"],
    "workflow": ["workflow.view"],
}

QC_MANAGER_CHECKS: List[PermissionCheck] = [
    ("quality_control", "approve"),
    ("quality_control", "reject"),
    ("quality_control", "manage"),
]
WAREHOUSE_MANAGER_CHECKS: List[PermissionCheck] = [
    ("warehouse_approval", "manager_approve"),
    ("warehouse_approval", "manager_reject"),
    ("warehouse_approval", "manage"),
]
INVENTORY_MANAGER_CHECKS: List[PermissionCheck] = [
    ("inventory", "adjust"),
    ("inventory", "transfer"),
    ("inventory", "manage"),
]


def permission_key(resource: str, action: str) -> str:
    return f"{resource}.{action}"


def split_permission(key: str) -> PermissionCheck:
    resource, _, action = key.partition(".")
    return resource, action


def has_permission(permissions: Iterable[str], resource: str, action: str) -> bool:
    return permission_key(resource, action) in set(permissions)


def has_all_permissions(permissions: Iterable[str], checks: Sequence[PermissionCheck]) -> bool:
    """AND over ``checks``; an empty list is vacuously satisfied."""
    granted = set(permissions)
    return all(permission_key(resource, action) in granted for resource, action in checks)


def has_any_permission(permissions: Iterable[str], checks: Sequence[PermissionCheck]) -> bool:
    """OR over ``checks``; an empty list is never satisfied."""
    granted = set(permissions)
    return any(permission_key(resource, action) in granted for resource, action in checks)


def resource_actions(permissions: Iterable[str], resource: str) -> List[str]:
    return sorted(action for res, action in map(split_permission, permissions) if res == resource)


def can_access_module(permissions: Iterable[str], module: str) -> bool:
    keys = MODULE_PERMISSIONS.get(module)
    if not keys:
        return False
    return has_any_permission(permissions, [split_permission(key) for key in keys])


@dataclass(frozen=True)
class UserContext:
    """The acting user, resolved once per request and passed down explicitly."""
    user_id: int
    username: str
    role: Optional[str] = None
    permissions: FrozenSet[str] = field(default_factory=frozenset)

    def with_permissions(self, extra: Iterable[str]) -> "UserContext":
        return UserContext(self.user_id, self.username, self.role, self.permissions | frozenset(extra))

    def has_permission(self, resource: str, action: str) -> bool:
        return has_permission(self.permissions, resource, action)

    def has_all_permissions(self, checks: Sequence[PermissionCheck]) -> bool:
        return has_all_permissions(self.permissions, checks)

    def has_any_permission(self, checks: Sequence[PermissionCheck]) -> bool:
        return has_any_permission(self.permissions, checks)

    def has_role(self, role: str) -> bool:
        return self.role == role

    def has_any_role(self, roles: Sequence[str]) -> bool:
        return self.role in roles


def is_admin(ctx: UserContext) -> bool:
    return ctx.has_any_role(ADMIN_ROLES)


def is_qc_manager(ctx: UserContext) -> bool:
    return ctx.has_role("qc_manager") or ctx.has_all_permissions(QC_MANAGER_CHECKS)


def is_warehouse_manager(ctx: UserContext) -> bool:
    return ctx.has_role("warehouse_manager") or ctx.has_all_permissions(WAREHOUSE_MANAGER_CHECKS)


def is_inventory_manager(ctx: UserContext) -> bool:
    return ctx.has_role("inventory_manager") or ctx.has_all_permissions(INVENTORY_MANAGER_CHECKS)


def can_perform_qc(ctx: UserContext) -> bool:
    return ctx.has_any_permission([
        ("quality_control", "create"),
        ("quality_control", "update"),
        ("quality_control", "approve"),
    ])


def can_manage_warehouse_approvals(ctx: UserContext) -> bool:
    return ctx.has_any_permission([
        ("warehouse_approval", "update"),
        ("warehouse_approval", "submit"),
        ("warehouse_approval", "manager_approve"),
    ])


def can_manage_inventory(ctx: UserContext) -> bool:
    return ctx.has_any_permission([
        ("inventory", "adjust"),
        ("inventory", "reserve"),
        ("inventory", "transfer"),
    ])
