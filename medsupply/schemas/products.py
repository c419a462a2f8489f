from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
from medsupply.models.products import ProductUnit


class ProductBase(BaseModel):
    code: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    principal_id: Optional[int] = None
    portfolio_id: Optional[int] = None
    category_id: Optional[int] = None
    unit: ProductUnit = ProductUnit.PCS
    gst_percentage: Decimal = Field(Decimal(18), ge=0, le=100)
    hsn_code: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    specification: Optional[str] = None
    is_active: bool = True


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1)
    name: Optional[str] = Field(None, min_length=1)
    principal_id: Optional[int] = None
    portfolio_id: Optional[int] = None
    category_id: Optional[int] = None
    unit: Optional[ProductUnit] = None
    gst_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    hsn_code: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    specification: Optional[str] = None
    is_active: Optional[bool] = None


class Product(ProductBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
