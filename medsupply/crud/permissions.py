from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from medsupply.models.permissions import Permission
from medsupply.models.users import User
from medsupply.utils.access import split_permission
from medsupply.utils.workflow_table import all_permissions

CRUD_RESOURCES = (
    "purchase_orders", "products", "categories", "principals", "branches", "warehouses", "doctors", "hospitals",
    "portfolios",
)

EXTRA_PERMISSIONS: List[Tuple[str, str]] = [
    ("dashboard", "view"),
    ("purchase_orders", "export"),
    ("invoice_receiving", "view"),
    ("invoice_receiving", "create"),
    ("invoice_receiving", "update"),
    ("invoice_receiving", "delete"),
    ("quality_control", "view"),
    ("quality_control", "create"),
    ("quality_control", "update"),
    ("quality_control", "submit"),
    ("quality_control", "approve"),
    ("quality_control", "reject"),
    ("quality_control", "assign"),
    ("quality_control", "manage"),
    ("warehouse_approval", "view"),
    ("warehouse_approval", "update"),
    ("warehouse_approval", "submit"),
    ("warehouse_approval", "manager_approve"),
    ("warehouse_approval", "manager_reject"),
    ("warehouse_approval", "assign"),
    ("warehouse_approval", "manage"),
    ("inventory", "view"),
    ("inventory", "adjust"),
    ("inventory", "reserve"),
    ("inventory", "transfer"),
    ("inventory", "utilize"),
    ("inventory", "manage"),
    ("users", "view"),
    ("users", "create"),
    ("users", "update"),
    ("permissions", "view"),
    ("permissions", "manage"),
    ("workflow", "view"),
    ("workflow", "manage"),
]


def permission_catalogue() -> List[Tuple[str, str]]:
    """Every (resource, action) pair the service checks, in a stable order."""
    pairs = {(resource, action) for resource in CRUD_RESOURCES for action in ("view", "create", "update", "delete")}
    pairs.update(EXTRA_PERMISSIONS)
    pairs.update(split_permission(key) for key in all_permissions())
    return sorted(pairs)


def describe(resource: str, action: str) -> str:
    return f"{action.replace('_', ' ').capitalize()} {resource.replace('_', ' ')}"


def seed_permissions(db: Session) -> int:
    """Insert any catalogue entries that are missing; returns how many were added."""
    existing = {(p.resource, p.action) for p in db.query(Permission).all()}
    added = 0
    for resource, action in permission_catalogue():
        if (resource, action) in existing:
            continue
        db.add(Permission(
            name=f"{resource}.{action}",
            resource=resource,
            action=action,
            description=describe(resource, action),
            created_by="system",
        ))
        added += 1
    db.flush()
    return added


def get_permission(db: Session, permission_id: int) -> Optional[Permission]:
    return db.query(Permission).filter(Permission.id == permission_id).first()


def get_permissions_by_ids(db: Session, ids: Iterable[int]) -> List[Permission]:
    ids = set(ids)
    permissions = db.query(Permission).filter(Permission.id.in_(ids)).all() if ids else []
    missing = ids - {p.id for p in permissions}
    if missing:
        raise LookupError(f"Unknown permission id(s): {sorted(missing)}")
    return permissions


def get_permissions_by_keys(db: Session, keys: Iterable[str]) -> List[Permission]:
    wanted = {split_permission(key) for key in keys}
    return [p for p in db.query(Permission).all() if (p.resource, p.action) in wanted]


def grant_all(db: Session, user: User) -> User:
    user.permissions = db.query(Permission).all()
    db.flush()
    return user
