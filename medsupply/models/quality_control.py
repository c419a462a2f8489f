from sqlalchemy import Column, Date, DateTime, Enum, ForeignKey, Integer, JSON, Numeric, String, Text
from sqlalchemy.orm import relationship
from medsupply.database import Base
from medsupply.models.audit_mixin import TimestampMixin
import enum


class QCStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    PENDING_APPROVAL = "pending_approval"
    COMPLETED = "completed"
    REJECTED = "rejected"
    ON_HOLD = "on_hold"
    CANCELLED = "cancelled"


class QCType(str, enum.Enum):
    STANDARD = "standard"
    URGENT = "urgent"
    SPECIAL = "special"


class Priority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class QCResult(str, enum.Enum):
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL_PASS = "partial_pass"


class QCProductStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL_PASS = "partial_pass"


class QCItemStatus(str, enum.Enum):
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class QCReason(str, enum.Enum):
    RECEIVED_CORRECTLY = "received_correctly"
    DAMAGED_PACKAGING = "damaged_packaging"
    DAMAGED_PRODUCT = "damaged_product"
    EXPIRED = "expired"
    NEAR_EXPIRY = "near_expiry"
    WRONG_PRODUCT = "wrong_product"
    QUANTITY_MISMATCH = "quantity_mismatch"
    QUALITY_ISSUE = "quality_issue"
    LABELING_ISSUE = "labeling_issue"
    OTHER = "other"


class QualityControl(Base, TimestampMixin):
    __tablename__ = "quality_control"

    id = Column(Integer, primary_key=True, index=True)
    qc_number = Column(String, unique=True, nullable=False, index=True)
    invoice_receiving_id = Column(Integer, ForeignKey("invoice_receivings.id"), nullable=False, unique=True)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id"), nullable=False, index=True)
    status = Column(Enum(QCStatus), nullable=False, default=QCStatus.PENDING, index=True)
    qc_type = Column(Enum(QCType), nullable=False, default=QCType.STANDARD)
    priority = Column(Enum(Priority), nullable=False, default=Priority.MEDIUM)
    overall_result = Column(Enum(QCResult), nullable=False, default=QCResult.PENDING)
    approval_status = Column(Enum(ApprovalStatus), nullable=False, default=ApprovalStatus.PENDING)
    assigned_to = Column(String, nullable=True)
    qc_by = Column(String, nullable=True)
    qc_date = Column(DateTime(timezone=True), nullable=True)
    qc_remarks = Column(Text, nullable=True)
    approved_by = Column(String, nullable=True)
    approval_date = Column(DateTime(timezone=True), nullable=True)
    approval_remarks = Column(Text, nullable=True)
    temperature = Column(Numeric(5, 2), nullable=True)
    humidity = Column(Numeric(5, 2), nullable=True)
    light_condition = Column(String, nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)

    invoice_receiving = relationship("InvoiceReceiving")
    purchase_order = relationship("PurchaseOrder")
    products = relationship(
        "QCProduct",
        back_populates="quality_control",
        cascade="all, delete-orphan",
        order_by="QCProduct.id",
    )


class QCProduct(Base):
    __tablename__ = "quality_control_products"

    id = Column(Integer, primary_key=True, index=True)
    quality_control_id = Column(Integer, ForeignKey("quality_control.id"), nullable=False, index=True)
    invoice_receiving_item_id = Column(Integer, ForeignKey("invoice_receiving_items.id"), nullable=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    product_name = Column(String, nullable=False)
    batch_no = Column(String, nullable=True)
    mfg_date = Column(Date, nullable=True)
    exp_date = Column(Date, nullable=True)
    received_qty = Column(Integer, nullable=False, default=0)
    qc_qty = Column(Integer, nullable=False, default=0)
    passed_qty = Column(Integer, nullable=False, default=0)
    failed_qty = Column(Integer, nullable=False, default=0)
    overall_status = Column(Enum(QCProductStatus), nullable=False, default=QCProductStatus.PENDING)
    # reason -> number of items flagged with it
    reason_summary = Column(JSON, nullable=False, default=dict)

    quality_control = relationship("QualityControl", back_populates="products")
    product = relationship("Product")
    items = relationship(
        "QCItem",
        back_populates="qc_product",
        cascade="all, delete-orphan",
        order_by="QCItem.item_number",
    )


class QCItem(Base):
    """A single received unit under inspection."""
    __tablename__ = "quality_control_items"

    id = Column(Integer, primary_key=True, index=True)
    qc_product_id = Column(Integer, ForeignKey("quality_control_products.id"), nullable=False, index=True)
    item_number = Column(Integer, nullable=False)
    status = Column(Enum(QCItemStatus), nullable=False, default=QCItemStatus.PENDING)
    reasons = Column(JSON, nullable=False, default=list)
    remarks = Column(Text, nullable=True)
    qc_by = Column(String, nullable=True)
    qc_date = Column(DateTime(timezone=True), nullable=True)

    qc_product = relationship("QCProduct", back_populates="items")
