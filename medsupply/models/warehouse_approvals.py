from sqlalchemy import BigInteger, Column, Date, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from medsupply.database import Base
from medsupply.models.audit_mixin import TimestampMixin, now_local
from medsupply.models.quality_control import Priority
import enum


class WarehouseApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    PENDING_MANAGER_APPROVAL = "pending_manager_approval"
    COMPLETED = "completed"
    REJECTED = "rejected"
    ON_HOLD = "on_hold"
    CANCELLED = "cancelled"


class WarehouseResult(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PARTIAL_APPROVED = "partial_approved"


class WarehouseProductStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PARTIAL_APPROVED = "partial_approved"
    ON_HOLD = "on_hold"


class WarehouseApproval(Base, TimestampMixin):
    __tablename__ = "warehouse_approvals"

    id = Column(Integer, primary_key=True, index=True)
    approval_number = Column(String, unique=True, nullable=False, index=True)
    quality_control_id = Column(Integer, ForeignKey("quality_control.id"), nullable=False, unique=True)
    invoice_receiving_id = Column(Integer, ForeignKey("invoice_receivings.id"), nullable=False)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id"), nullable=False, index=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False)
    status = Column(Enum(WarehouseApprovalStatus), nullable=False, default=WarehouseApprovalStatus.PENDING, index=True)
    priority = Column(Enum(Priority), nullable=False, default=Priority.MEDIUM)
    overall_result = Column(Enum(WarehouseResult), nullable=False, default=WarehouseResult.PENDING)
    assigned_to = Column(String, nullable=True)
    remarks = Column(Text, nullable=True)
    temperature = Column(Numeric(5, 2), nullable=True)
    humidity = Column(Numeric(5, 2), nullable=True)
    storage_condition = Column(String, nullable=True)
    submitted_by = Column(String, nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    inventory_status = Column(String, nullable=False, default="pending")

    quality_control = relationship("QualityControl")
    warehouse = relationship("Warehouse")
    purchase_order = relationship("PurchaseOrder")
    products = relationship(
        "WarehouseApprovalProduct",
        back_populates="warehouse_approval",
        cascade="all, delete-orphan",
        order_by="WarehouseApprovalProduct.id",
    )
    manager_approvals = relationship(
        "ManagerApproval",
        back_populates="warehouse_approval",
        cascade="all, delete-orphan",
        order_by="ManagerApproval.id",
    )


class WarehouseApprovalProduct(Base):
    __tablename__ = "warehouse_approval_products"

    id = Column(Integer, primary_key=True, index=True)
    warehouse_approval_id = Column(Integer, ForeignKey("warehouse_approvals.id"), nullable=False, index=True)
    qc_product_id = Column(Integer, ForeignKey("quality_control_products.id"), nullable=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    product_name = Column(String, nullable=False)
    batch_no = Column(String, nullable=True)
    mfg_date = Column(Date, nullable=True)
    exp_date = Column(Date, nullable=True)
    qc_passed_qty = Column(Integer, nullable=False, default=0)
    approved_qty = Column(Integer, nullable=False, default=0)
    rejected_qty = Column(Integer, nullable=False, default=0)
    unit_cost_paise = Column(BigInteger, nullable=False, default=0)
    status = Column(Enum(WarehouseProductStatus), nullable=False, default=WarehouseProductStatus.PENDING)
    zone = Column(String, nullable=True)
    rack = Column(String, nullable=True)
    shelf = Column(String, nullable=True)
    bin = Column(String, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    remarks = Column(Text, nullable=True)
    inspected_by = Column(String, nullable=True)
    inspected_at = Column(DateTime(timezone=True), nullable=True)

    warehouse_approval = relationship("WarehouseApproval", back_populates="products")
    product = relationship("Product")


class ManagerApproval(Base):
    __tablename__ = "warehouse_manager_approvals"

    id = Column(Integer, primary_key=True, index=True)
    warehouse_approval_id = Column(Integer, ForeignKey("warehouse_approvals.id"), nullable=False, index=True)
    level = Column(Integer, nullable=False, default=1)
    action = Column(String, nullable=False)  # approve | reject
    remarks = Column(Text, nullable=True)
    approved_by = Column(String, nullable=False)
    approved_at = Column(DateTime(timezone=True), default=now_local)

    warehouse_approval = relationship("WarehouseApproval", back_populates="manager_approvals")
