from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Table, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from medsupply.database import Base
from medsupply.models.audit_mixin import TimestampMixin, now_local, to_local

stage_permission_grants = Table(
    "stage_permission_grants",
    Base.metadata,
    Column("stage_permission_id", Integer, ForeignKey("stage_permissions.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", Integer, ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)


class StagePermission(Base, TimestampMixin):
    """Permissions granted to one user for actions taken at one workflow stage."""
    __tablename__ = "stage_permissions"
    __table_args__ = (UniqueConstraint('user_id', 'stage_code', name='_stage_permission_user_stage_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    stage_code = Column(String, nullable=False, index=True)
    assigned_by = Column(String, nullable=True)
    expiry_date = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    remarks = Column(Text, nullable=True)

    user = relationship("User", back_populates="stage_permissions", foreign_keys=[user_id])
    permissions = relationship("Permission", secondary=stage_permission_grants, lazy="selectin")

    def is_valid(self, at=None) -> bool:
        if not self.is_active:
            return False
        if self.expiry_date is None:
            return True
        # sqlite hands back naive datetimes, stored in local time
        return to_local(self.expiry_date) > to_local(at or now_local())

    @property
    def permission_keys(self):
        return sorted(p.key for p in self.permissions)
