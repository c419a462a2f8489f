from datetime import date
from typing import Optional

from sqlalchemy.orm import Session


def next_document_number(db: Session, column, prefix: str, on: Optional[date] = None) -> str:
    """Next number of the form PREFIX-YYYYMM-NNNN for the month of ``on``.

    Soft-deleted rows still count, so numbers are never reused.
    """
    on = on or date.today()
    stem = f"{prefix}-{on:%Y%m}-"
    numbers = (
        db.query(column)
        .filter(column.like(f"{stem}%"))
        .execution_options(include_deleted=True)
        .all()
    )
    last = max((int(number.rsplit("-", 1)[1]) for (number,) in numbers), default=0)
    return f"{stem}{last + 1:04d}"
