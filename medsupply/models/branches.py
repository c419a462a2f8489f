from sqlalchemy import Boolean, Column, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from medsupply.database import Base
from medsupply.models.audit_mixin import TimestampMixin
import enum


class ContactDepartment(str, enum.Enum):
    ADMIN = "Admin"
    OPERATIONS = "Operations"
    SALES = "Sales"
    LOGISTICS = "Logistics"


class Branch(Base, TimestampMixin):
    __tablename__ = "branches"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    branch_code = Column(String, unique=True, nullable=True)
    email = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    alternate_phone = Column(String, nullable=True)
    drug_license_number = Column(String, nullable=False)
    gst_number = Column(String, unique=True, nullable=False, index=True)
    pan_number = Column(String, unique=True, nullable=False)
    gst_address = Column(Text, nullable=False)
    city = Column(String, nullable=False)
    state = Column(String, nullable=False)
    pincode = Column(String, nullable=False)
    remarks = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    contacts = relationship("BranchContact", back_populates="branch", cascade="all, delete-orphan")
    warehouses = relationship("Warehouse", back_populates="branch")


class BranchContact(Base, TimestampMixin):
    """A person to reach at a branch, or at one of its warehouses when ``warehouse_id`` is set."""
    __tablename__ = "branch_contacts"

    id = Column(Integer, primary_key=True, index=True)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False, index=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=True, index=True)
    contact_person_name = Column(String, nullable=False)
    department = Column(Enum(ContactDepartment), nullable=False)
    designation = Column(String, nullable=False)
    contact_number = Column(String, nullable=False)
    alternate_contact_person = Column(String, nullable=True)
    email_address = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    branch = relationship("Branch", back_populates="contacts")
    warehouse = relationship("Warehouse")

    @property
    def contact_type(self) -> str:
        return "warehouse" if self.warehouse_id else "branch"
