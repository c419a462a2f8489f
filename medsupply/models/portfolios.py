from sqlalchemy import Boolean, Column, Integer, String, Text
from medsupply.database import Base
from medsupply.models.audit_mixin import TimestampMixin


class Portfolio(Base, TimestampMixin):
    __tablename__ = "portfolios"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
