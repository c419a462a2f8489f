from sqlalchemy import Boolean, Column, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from medsupply.database import Base
from medsupply.models.audit_mixin import TimestampMixin
import enum


class ProductUnit(str, enum.Enum):
    PCS = "PCS"
    BOX = "BOX"
    KG = "KG"
    GM = "GM"
    LTR = "LTR"
    ML = "ML"
    MTR = "MTR"
    CM = "CM"
    DOZEN = "DOZEN"
    PACK = "PACK"


class Product(Base, TimestampMixin):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False, index=True)
    principal_id = Column(Integer, ForeignKey("principals.id"), nullable=True)
    portfolio_id = Column(Integer, ForeignKey("portfolios.id"), nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)
    unit = Column(Enum(ProductUnit), nullable=False, default=ProductUnit.PCS)
    gst_percentage = Column(Numeric(5, 2), nullable=False, default=18)
    hsn_code = Column(String, nullable=True)
    sku = Column(String, nullable=True)
    barcode = Column(String, nullable=True)
    specification = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    principal = relationship("Principal", back_populates="products")
    portfolio = relationship("Portfolio")
    category = relationship("Category")
