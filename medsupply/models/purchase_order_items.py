from sqlalchemy import BigInteger, Column, Enum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship
from medsupply.database import Base
from medsupply.models.products import ProductUnit
from medsupply.utils.money import rupee_property
from medsupply.utils.po_totals import DiscountType


class PurchaseOrderItem(Base):
    __tablename__ = "purchase_order_items"

    id = Column(Integer, primary_key=True, index=True)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    # Snapshot of the product at order time
    product_code = Column(String, nullable=True)
    product_name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    foc = Column(Integer, nullable=False, default=0)
    unit_price_paise = Column(BigInteger, nullable=False)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    discount_type = Column(Enum(DiscountType), nullable=False, default=DiscountType.PERCENTAGE)
    discount_amount_paise = Column(BigInteger, nullable=False, default=0)
    total_cost_paise = Column(BigInteger, nullable=False, default=0)
    unit = Column(Enum(ProductUnit), nullable=False, default=ProductUnit.PCS)
    gst_rate = Column(Numeric(5, 2), nullable=False, default=5)
    received_qty = Column(Integer, nullable=False, default=0)
    backlog_qty = Column(Integer, nullable=False, default=0)

    purchase_order = relationship("PurchaseOrder", back_populates="items")
    product = relationship("Product")

    unit_price = rupee_property("unit_price_paise")
    discount_amount = rupee_property("discount_amount_paise")
    total_cost = rupee_property("total_cost_paise")
