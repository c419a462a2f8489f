from sqlalchemy import BigInteger, Column, Date, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from medsupply.database import Base
from medsupply.models.audit_mixin import TimestampMixin
from medsupply.utils.money import rupee_property
import enum


class ReceivingStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    QC_PENDING = "qc_pending"
    COMPLETED = "completed"
    REJECTED = "rejected"


class ReceivedLineStatus(str, enum.Enum):
    RECEIVED = "received"
    BACKLOG = "backlog"
    DAMAGED = "damaged"
    REJECTED = "rejected"


class InvoiceReceiving(Base, TimestampMixin):
    __tablename__ = "invoice_receivings"

    id = Column(Integer, primary_key=True, index=True)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id"), nullable=False, index=True)
    invoice_number = Column(String, nullable=False, index=True)
    invoice_date = Column(Date, nullable=False)
    invoice_amount_paise = Column(BigInteger, nullable=False, default=0)
    received_date = Column(Date, nullable=False)
    received_by = Column(String, nullable=False)
    status = Column(Enum(ReceivingStatus), nullable=False, default=ReceivingStatus.SUBMITTED)
    qc_status = Column(String, nullable=False, default="pending")
    notes = Column(Text, nullable=True)

    purchase_order = relationship("PurchaseOrder")
    items = relationship(
        "InvoiceReceivingItem",
        back_populates="invoice_receiving",
        cascade="all, delete-orphan",
        order_by="InvoiceReceivingItem.id",
    )

    invoice_amount = rupee_property("invoice_amount_paise")


class InvoiceReceivingItem(Base):
    __tablename__ = "invoice_receiving_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_receiving_id = Column(Integer, ForeignKey("invoice_receivings.id"), nullable=False, index=True)
    purchase_order_item_id = Column(Integer, ForeignKey("purchase_order_items.id"), nullable=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    product_name = Column(String, nullable=False)
    ordered_qty = Column(Integer, nullable=False, default=0)
    received_qty = Column(Integer, nullable=False, default=0)
    foc = Column(Integer, nullable=False, default=0)
    unit_price_paise = Column(BigInteger, nullable=False, default=0)
    batch_no = Column(String, nullable=True)
    mfg_date = Column(Date, nullable=True)
    exp_date = Column(Date, nullable=True)
    status = Column(Enum(ReceivedLineStatus), nullable=False, default=ReceivedLineStatus.RECEIVED)
    remarks = Column(Text, nullable=True)

    invoice_receiving = relationship("InvoiceReceiving", back_populates="items")
    product = relationship("Product")

    unit_price = rupee_property("unit_price_paise")
