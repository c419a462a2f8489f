from sqlalchemy import Boolean, Column, Integer, String, Text
from medsupply.database import Base
from medsupply.models.audit_mixin import TimestampMixin


class Hospital(Base, TimestampMixin):
    __tablename__ = "hospitals"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False, index=True)
    hospital_type = Column(String, nullable=True)
    address = Column(Text, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    pincode = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    contact_person = Column(String, nullable=True)
    gstin = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
