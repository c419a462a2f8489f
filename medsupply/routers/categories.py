from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from medsupply.crud import master_data
from medsupply.database import get_db
from medsupply.models.categories import Category as CategoryModel
from medsupply.models.products import Product as ProductModel
from medsupply.schemas.categories import Category, CategoryCreate, CategoryNode, CategoryUpdate
from medsupply.schemas.common import ApiResponse, Page, ok, paginate
from medsupply.utils.access import UserContext
from medsupply.utils.auth_utils import require_permission
from medsupply.utils.errors import FieldError, ValidationFailed

router = APIRouter(prefix="/categories", tags=["Categories"])
logger = logging.getLogger("categories")

REFERENCES = [(ProductModel, "category_id"), (CategoryModel, "parent_id")]


def _get_or_404(db: Session, category_id: int):
    db_category = db.query(CategoryModel).filter(CategoryModel.id == category_id).first()
    if db_category is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return db_category


def _check_parent(db: Session, parent_id: Optional[int], category_id: Optional[int] = None) -> None:
    """The parent must exist and must not sit below the category being edited."""
    if parent_id is None:
        return
    master_data.check_reference(db, CategoryModel, "parent_id", parent_id)
    seen = set()
    current = parent_id
    while current is not None and current not in seen:
        if current == category_id:
            raise ValidationFailed([FieldError("parent_id", "A category cannot be placed under itself")])
        seen.add(current)
        current = db.query(CategoryModel.parent_id).filter(CategoryModel.id == current).scalar()


@router.post("/", response_model=ApiResponse[Category], status_code=status.HTTP_201_CREATED)
def create_category(
    category: CategoryCreate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("categories", "create")),
):
    master_data.check_unique(db, CategoryModel, "name", category.name)
    master_data.check_unique(db, CategoryModel, "code", category.code)
    _check_parent(db, category.parent_id)
    db_category = master_data.create_record(db, CategoryModel, category.model_dump(), user, "categories")
    db.commit()
    db.refresh(db_category)
    logger.info(f"Category '{db_category.name}' created by user {user.username}")
    return ok(db_category, "Category created successfully")


@router.get("/", response_model=ApiResponse[Page[Category]])
def read_categories(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    parent_id: Optional[int] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("categories", "view")),
):
    query = db.query(CategoryModel)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(CategoryModel.name.ilike(pattern), CategoryModel.code.ilike(pattern)))
    if parent_id:
        query = query.filter(CategoryModel.parent_id == parent_id)
    if is_active is not None:
        query = query.filter(CategoryModel.is_active == is_active)
    rows, pagination = paginate(query.order_by(CategoryModel.name), page, limit)
    return ok({"items": rows, "pagination": pagination})


@router.get("/tree", response_model=ApiResponse[List[CategoryNode]])
def read_category_tree(
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("categories", "view")),
):
    """Every category nested under its parent, names sorted at each level."""
    nodes = {}
    children = {}
    for category in db.query(CategoryModel).order_by(CategoryModel.name).all():
        nodes[category.id] = {"id": category.id, "name": category.name, "code": category.code,
                              "is_active": category.is_active, "children": []}
        children.setdefault(category.parent_id, []).append(category.id)
    for parent_id, ids in children.items():
        if parent_id in nodes:
            nodes[parent_id]["children"] = [nodes[i] for i in ids]
    return ok([nodes[i] for i in children.get(None, [])])


@router.get("/{category_id}", response_model=ApiResponse[Category])
def read_category(
    category_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("categories", "view")),
):
    return ok(_get_or_404(db, category_id))


@router.patch("/{category_id}", response_model=ApiResponse[Category])
def update_category(
    category_id: int,
    category: CategoryUpdate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("categories", "update")),
):
    db_category = _get_or_404(db, category_id)
    data = category.model_dump(exclude_unset=True)
    master_data.check_unique(db, CategoryModel, "name", data.get("name"), exclude_id=category_id)
    master_data.check_unique(db, CategoryModel, "code", data.get("code"), exclude_id=category_id)
    _check_parent(db, data.get("parent_id"), category_id)
    master_data.update_record(db, db_category, data, user, "categories")
    db.commit()
    db.refresh(db_category)
    logger.info(f"Category '{db_category.name}' (ID: {category_id}) updated by user {user.username}")
    return ok(db_category, "Category updated successfully")


@router.delete("/{category_id}", response_model=ApiResponse[dict])
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("categories", "delete")),
):
    db_category = _get_or_404(db, category_id)
    deactivated = master_data.retire_record(db, db_category, REFERENCES, user, "categories", {"is_active": False})
    db.commit()
    if deactivated:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Category '{db_category.name}' has products or sub-categories. Status changed to inactive.",
        )
    return ok({"id": category_id}, "Category deleted successfully")
