from sqlalchemy import BigInteger, Column, Date, DateTime, Enum, ForeignKey, Integer, JSON, Numeric, String, Text
from sqlalchemy.orm import relationship
from medsupply.database import Base
from medsupply.models.audit_mixin import AuditMixin
from medsupply.utils.money import rupee_property
from medsupply.utils.po_totals import DiscountType, TaxType
from medsupply.utils.workflow_table import POStatus, Stage


class PurchaseOrder(Base, AuditMixin):
    __tablename__ = "purchase_orders"

    id = Column(Integer, primary_key=True, index=True)
    po_number = Column(String, unique=True, nullable=False, index=True)
    po_date = Column(Date, nullable=False)
    principal_id = Column(Integer, ForeignKey("principals.id"), nullable=False)

    # {"branch_warehouse", "name", "address", "gstin", "drug_license", "phone"}
    bill_to = Column(JSON, nullable=False)
    bill_to_name = Column(String, nullable=True, index=True)
    ship_to = Column(JSON, nullable=False)

    additional_discount_type = Column(Enum(DiscountType), nullable=False, default=DiscountType.PERCENTAGE)
    additional_discount_value = Column(Numeric(12, 2), nullable=False, default=0)
    tax_type = Column(Enum(TaxType), nullable=False, default=TaxType.IGST)
    gst_rate = Column(Numeric(5, 2), nullable=False, default=5)
    shipping_type = Column(Enum(DiscountType), nullable=False, default=DiscountType.AMOUNT)
    shipping_value = Column(Numeric(12, 2), nullable=False, default=0)

    # Stored totals in paise
    sub_total_paise = Column(BigInteger, nullable=False, default=0)
    product_level_discount_paise = Column(BigInteger, nullable=False, default=0)
    additional_discount_paise = Column(BigInteger, nullable=False, default=0)
    total_after_discount_paise = Column(BigInteger, nullable=False, default=0)
    cgst_paise = Column(BigInteger, nullable=False, default=0)
    sgst_paise = Column(BigInteger, nullable=False, default=0)
    igst_paise = Column(BigInteger, nullable=False, default=0)
    gst_amount_paise = Column(BigInteger, nullable=False, default=0)
    shipping_amount_paise = Column(BigInteger, nullable=False, default=0)
    grand_total_paise = Column(BigInteger, nullable=False, default=0)

    to_emails = Column(JSON, nullable=False, default=list)
    cc_emails = Column(JSON, nullable=False, default=list)
    from_email = Column(String, nullable=True)
    terms = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    status = Column(Enum(POStatus), nullable=False, default=POStatus.DRAFT, index=True)
    current_stage = Column(Enum(Stage), nullable=False, default=Stage.DRAFT, index=True)
    approved_by = Column(String, nullable=True)
    approved_date = Column(DateTime(timezone=True), nullable=True)

    principal = relationship("Principal")
    items = relationship(
        "PurchaseOrderItem",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderItem.id",
    )
    history = relationship(
        "PurchaseOrderHistory",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderHistory.id",
    )

    sub_total = rupee_property("sub_total_paise")
    product_level_discount = rupee_property("product_level_discount_paise")
    additional_discount = rupee_property("additional_discount_paise")
    total_after_discount = rupee_property("total_after_discount_paise")
    cgst = rupee_property("cgst_paise")
    sgst = rupee_property("sgst_paise")
    igst = rupee_property("igst_paise")
    gst_amount = rupee_property("gst_amount_paise")
    shipping_amount = rupee_property("shipping_amount_paise")
    grand_total = rupee_property("grand_total_paise")

    @property
    def principal_name(self):
        return self.principal.name if self.principal else None
