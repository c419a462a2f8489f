from sqlalchemy import Column, DateTime, String
from datetime import datetime
import os
import pytz

APP_TIMEZONE = pytz.timezone(os.getenv("APP_TIMEZONE", "Asia/Kolkata"))


def now_local() -> datetime:
    return datetime.now(APP_TIMEZONE)


def to_local(value: datetime) -> datetime:
    """Express a datetime in the business timezone; naive values are taken as local wall-clock time."""
    if value.tzinfo is None:
        return APP_TIMEZONE.localize(value)
    return value.astimezone(APP_TIMEZONE)


class TimestampMixin:
    """Mixin that provides created/updated timestamps and user info.

    This is the minimal mixin used for most models. It does NOT include soft-delete
    columns, so master data is deactivated through its own flags instead.
    """
    # Timezone-aware timestamps so every date is stored in the business timezone.
    created_at = Column(DateTime(timezone=True), default=now_local)
    updated_at = Column(DateTime(timezone=True), onupdate=now_local)
    created_by = Column(String, nullable=True)
    updated_by = Column(String, nullable=True)


class SoftDeleteMixin:
    """Mixin for soft-delete columns (deleted_at, deleted_by).

    Only purchase orders use this; rows with deleted_at set are filtered out of
    every query by the listener in database.py.
    """
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    deleted_by = Column(String, nullable=True)


class AuditMixin(TimestampMixin, SoftDeleteMixin):
    """Timestamps plus soft-delete."""
    pass
