from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from medsupply.database import Base
from medsupply.models.audit_mixin import TimestampMixin


class Principal(Base, TimestampMixin):
    """A supplier that purchase orders are raised against."""
    __tablename__ = "principals"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False, index=True)
    gst_number = Column(String, nullable=True)
    drug_license = Column(String, nullable=True)
    email = Column(String, nullable=True)
    mobile = Column(String, nullable=True)
    address = Column(Text, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    pincode = Column(String, nullable=True)
    portfolio_id = Column(Integer, ForeignKey("portfolios.id"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    portfolio = relationship("Portfolio")
    products = relationship("Product", back_populates="principal")
