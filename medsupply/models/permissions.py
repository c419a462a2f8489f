from sqlalchemy import Column, Integer, String, UniqueConstraint
from medsupply.database import Base
from medsupply.models.audit_mixin import TimestampMixin


class Permission(Base, TimestampMixin):
    __tablename__ = "permissions"
    __table_args__ = (UniqueConstraint('resource', 'action', name='_permission_resource_action_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(String, nullable=True)
    resource = Column(String, nullable=False, index=True)
    action = Column(String, nullable=False)

    @property
    def key(self) -> str:
        return f"{self.resource}.{self.action}"
