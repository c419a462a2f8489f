"""Assignment, workload and statistics queries shared by quality control and warehouse approval.

Both inspections carry ``status``, ``priority``, ``assigned_to`` and
``overall_result`` columns; the helpers here take the model and the status
enum so each module keeps its own vocabulary.
"""
from datetime import date
from typing import Iterable, List, Optional
import logging

from sqlalchemy.orm import Session

from medsupply.models.audit_mixin import now_local, to_local
from medsupply.models.quality_control import Priority
from medsupply.utils.access import UserContext
from medsupply.utils.errors import FieldError, ValidationFailed

logger = logging.getLogger("assignments")

UNASSIGNED = "Unassigned"


def bulk_assign(db: Session, model, open_statuses: Iterable, ids: List[int], assigned_to: str, user: UserContext,
                priority: Optional[Priority] = None) -> dict:
    """Hand open records to ``assigned_to``; closed or unknown ids are reported back, not changed."""
    if not ids:
        raise ValidationFailed([FieldError("ids", "At least one id is required")])
    if not (assigned_to or "").strip():
        raise ValidationFailed([FieldError("assigned_to", "Assignee is required")])
    open_statuses = tuple(open_statuses)
    records = db.query(model).filter(model.id.in_(set(ids))).all()
    modified = []
    for record in records:
        if record.status not in open_statuses:
            continue
        record.assigned_to = assigned_to.strip()
        if priority is not None:
            record.priority = priority
        record.updated_by = user.username
        record.updated_at = now_local()
        modified.append(record.id)
    db.flush()
    skipped = sorted(set(ids) - set(modified))
    logger.info(f"{model.__tablename__}: {len(modified)} record(s) assigned to {assigned_to} by user {user.username}")
    return {"requested": len(set(ids)), "modified": len(modified), "modified_ids": sorted(modified),
            "skipped_ids": skipped}


def workload(db: Session, model, open_statuses: Iterable, pending, in_progress,
             include_closed: bool = False) -> List[dict]:
    """Per-assignee counts, busiest first."""
    query = db.query(model)
    if not include_closed:
        query = query.filter(model.status.in_(tuple(open_statuses)))
    rows = {}
    for record in query.all():
        name = record.assigned_to or UNASSIGNED
        row = rows.setdefault(name, {"assigned_to": name, "total": 0, "pending": 0, "in_progress": 0,
                                     "high_priority": 0, "urgent": 0})
        row["total"] += 1
        if record.status == pending:
            row["pending"] += 1
        elif record.status == in_progress:
            row["in_progress"] += 1
        if record.priority == Priority.HIGH:
            row["high_priority"] += 1
        elif record.priority == Priority.URGENT:
            row["urgent"] += 1
    return sorted(rows.values(), key=lambda row: (-row["total"], row["assigned_to"]))


def _count(values) -> dict:
    counts = {}
    for value in values:
        key = getattr(value, "value", value)
        counts[key] = counts.get(key, 0) + 1
    return counts


def statistics(db: Session, model, finished_column: str, completed, date_from: Optional[date] = None,
               date_to: Optional[date] = None, type_column: Optional[str] = None) -> dict:
    """Status, result and priority breakdowns plus turnaround hours for completed records.

    ``date_from``/``date_to`` bound the creation date, inclusive, in the business timezone.
    """
    records = []
    for record in db.query(model).all():
        created = to_local(record.created_at).date() if record.created_at else None
        if date_from and (created is None or created < date_from):
            continue
        if date_to and (created is None or created > date_to):
            continue
        records.append(record)

    done = [r for r in records if r.status == completed]
    hours = []
    for record in done:
        finished = getattr(record, finished_column)
        if finished is not None and record.created_at is not None:
            delta = to_local(finished) - to_local(record.created_at)
            hours.append(delta.total_seconds() / 3600)

    result = {
        "total": len(records),
        "by_status": _count(r.status for r in records),
        "by_result": _count(r.overall_result for r in done),
        "by_priority": _count(r.priority for r in records),
        "processing_hours": {
            "completed": len(hours),
            "average": round(sum(hours) / len(hours), 2) if hours else None,
            "minimum": round(min(hours), 2) if hours else None,
            "maximum": round(max(hours), 2) if hours else None,
        },
    }
    if type_column:
        result["by_type"] = _count(getattr(r, type_column) for r in records)
    return result
