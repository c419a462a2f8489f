"""Create / update / retire helpers shared by the master-data routers.

Records that other rows point at are never removed; they are switched off
instead so historical orders keep their references.
"""
from typing import Iterable, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from medsupply.crud.audit_log import create_audit_log
from medsupply.models.audit_mixin import now_local
from medsupply.schemas.audit_log import AuditLogCreate
from medsupply.utils import sqlalchemy_to_dict
from medsupply.utils.access import UserContext
from medsupply.utils.errors import FieldError, ValidationFailed

logger = logging.getLogger("master_data")

# (model, foreign key column name) pairs that reference a record
References = Iterable[Tuple[type, str]]


def check_unique(db: Session, model, field: str, value, exclude_id: Optional[int] = None) -> None:
    if value is None:
        return
    query = db.query(model).filter(getattr(model, field) == value)
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    if query.first() is not None:
        raise ValidationFailed([FieldError(field, f"{value} already exists")])


def check_reference(db: Session, model, field: str, value) -> None:
    """Reject a foreign key that points at no row; None is allowed."""
    if value is None:
        return
    if db.query(model.id).filter(model.id == value).first() is None:
        raise ValidationFailed([FieldError(field, f"{model.__name__} {value} not found")])


def create_record(db: Session, model, data: dict, user: UserContext, table_name: str):
    record = model(**data, created_by=user.username)
    db.add(record)
    db.flush()
    create_audit_log(db, AuditLogCreate(
        table_name=table_name,
        record_id=record.id,
        changed_by=user.username,
        action="CREATE",
        new_values=sqlalchemy_to_dict(record),
    ))
    return record


def update_record(db: Session, record, data: dict, user: UserContext, table_name: str):
    old_values = sqlalchemy_to_dict(record)
    for key, value in data.items():
        setattr(record, key, value)
    record.updated_at = now_local()
    record.updated_by = user.username
    db.flush()
    create_audit_log(db, AuditLogCreate(
        table_name=table_name,
        record_id=record.id,
        changed_by=user.username,
        action="UPDATE",
        old_values=old_values,
        new_values=sqlalchemy_to_dict(record),
    ))
    return record


def is_referenced(db: Session, record_id: int, references: References) -> bool:
    for model, column in references:
        query = db.query(model.id).filter(getattr(model, column) == record_id)
        # Soft-deleted orders still hold their foreign keys
        if query.execution_options(include_deleted=True).first() is not None:
            return True
    return False


def retire_record(db: Session, record, references: References, user: UserContext, table_name: str,
                  deactivate: dict) -> bool:
    """Delete ``record`` or, when anything references it, apply ``deactivate`` instead.

    Returns True when the record was deactivated rather than deleted.
    """
    old_values = sqlalchemy_to_dict(record)
    if is_referenced(db, record.id, references):
        for key, value in deactivate.items():
            setattr(record, key, value)
        record.updated_at = now_local()
        record.updated_by = user.username
        db.flush()
        create_audit_log(db, AuditLogCreate(
            table_name=table_name,
            record_id=record.id,
            changed_by=user.username,
            action="DEACTIVATE",
            old_values=old_values,
            new_values=sqlalchemy_to_dict(record),
        ))
        logger.warning(f"{table_name} record {record.id} is referenced; deactivated by user {user.username}")
        return True

    delete_record(db, record, user, table_name)
    return False


def delete_record(db: Session, record, user: UserContext, table_name: str) -> None:
    old_values = sqlalchemy_to_dict(record)
    db.delete(record)
    db.flush()
    create_audit_log(db, AuditLogCreate(
        table_name=table_name,
        record_id=old_values["id"],
        changed_by=user.username,
        action="DELETE",
        old_values=old_values,
    ))
    logger.info(f"{table_name} record {old_values['id']} deleted by user {user.username}")
