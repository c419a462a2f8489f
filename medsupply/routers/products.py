from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from medsupply.crud import master_data
from medsupply.database import get_db
from medsupply.models.categories import Category as CategoryModel
from medsupply.models.inventory import Inventory as InventoryModel
from medsupply.models.products import Product as ProductModel
from medsupply.models.purchase_order_items import PurchaseOrderItem as PurchaseOrderItemModel
from medsupply.schemas.common import ApiResponse, Page, ok, paginate
from medsupply.schemas.products import Product, ProductCreate, ProductUpdate
from medsupply.utils.access import UserContext
from medsupply.utils.auth_utils import require_permission

router = APIRouter(prefix="/products", tags=["Products"])
logger = logging.getLogger("products")

REFERENCES = [(PurchaseOrderItemModel, "product_id"), (InventoryModel, "product_id")]


def _get_or_404(db: Session, product_id: int):
    db_product = db.query(ProductModel).filter(ProductModel.id == product_id).first()
    if db_product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return db_product


@router.post("/", response_model=ApiResponse[Product], status_code=status.HTTP_201_CREATED)
def create_product(
    product: ProductCreate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("products", "create")),
):
    master_data.check_unique(db, ProductModel, "code", product.code)
    master_data.check_reference(db, CategoryModel, "category_id", product.category_id)
    db_product = master_data.create_record(db, ProductModel, product.model_dump(), user, "products")
    db.commit()
    db.refresh(db_product)
    logger.info(f"Product '{db_product.code}' created by user {user.username}")
    return ok(db_product, "Product created successfully")


@router.get("/", response_model=ApiResponse[Page[Product]])
def read_products(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    principal_id: Optional[int] = None,
    portfolio_id: Optional[int] = None,
    category_id: Optional[int] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("products", "view")),
):
    query = db.query(ProductModel)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            ProductModel.code.ilike(pattern),
            ProductModel.name.ilike(pattern),
            ProductModel.hsn_code.ilike(pattern),
        ))
    if principal_id:
        query = query.filter(ProductModel.principal_id == principal_id)
    if portfolio_id:
        query = query.filter(ProductModel.portfolio_id == portfolio_id)
    if category_id:
        query = query.filter(ProductModel.category_id == category_id)
    if is_active is not None:
        query = query.filter(ProductModel.is_active == is_active)
    rows, pagination = paginate(query.order_by(ProductModel.name), page, limit)
    return ok({"items": rows, "pagination": pagination})


@router.get("/{product_id}", response_model=ApiResponse[Product])
def read_product(
    product_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("products", "view")),
):
    return ok(_get_or_404(db, product_id))


@router.patch("/{product_id}", response_model=ApiResponse[Product])
def update_product(
    product_id: int,
    product: ProductUpdate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("products", "update")),
):
    db_product = _get_or_404(db, product_id)
    data = product.model_dump(exclude_unset=True)
    master_data.check_unique(db, ProductModel, "code", data.get("code"), exclude_id=product_id)
    master_data.check_reference(db, CategoryModel, "category_id", data.get("category_id"))
    master_data.update_record(db, db_product, data, user, "products")
    db.commit()
    db.refresh(db_product)
    logger.info(f"Product '{db_product.code}' (ID: {product_id}) updated by user {user.username}")
    return ok(db_product, "Product updated successfully")


@router.delete("/{product_id}", response_model=ApiResponse[dict])
def delete_product(
    product_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("products", "delete")),
):
    db_product = _get_or_404(db, product_id)
    deactivated = master_data.retire_record(db, db_product, REFERENCES, user, "products", {"is_active": False})
    db.commit()
    if deactivated:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Product '{db_product.code}' is used on orders or in stock. Status changed to inactive.",
        )
    return ok({"id": product_id}, "Product deleted successfully")
