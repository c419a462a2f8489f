from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from medsupply.crud import master_data
from medsupply.database import get_db
from medsupply.models.doctors import Doctor as DoctorModel
from medsupply.models.portfolios import Portfolio as PortfolioModel
from medsupply.models.principals import Principal as PrincipalModel
from medsupply.models.products import Product as ProductModel
from medsupply.schemas.common import ApiResponse, Page, ok, paginate
from medsupply.schemas.portfolios import Portfolio, PortfolioCreate, PortfolioUpdate
from medsupply.utils.access import UserContext
from medsupply.utils.auth_utils import require_permission

router = APIRouter(prefix="/portfolios", tags=["Portfolios"])
logger = logging.getLogger("portfolios")

REFERENCES = [(PrincipalModel, "portfolio_id"), (ProductModel, "portfolio_id"), (DoctorModel, "portfolio_id")]


def _get_or_404(db: Session, portfolio_id: int):
    db_portfolio = db.query(PortfolioModel).filter(PortfolioModel.id == portfolio_id).first()
    if db_portfolio is None:
        raise HTTPException(status_code=404, detail="Portfolio not found")
    return db_portfolio


@router.post("/", response_model=ApiResponse[Portfolio], status_code=status.HTTP_201_CREATED)
def create_portfolio(
    portfolio: PortfolioCreate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("portfolios", "create")),
):
    master_data.check_unique(db, PortfolioModel, "name", portfolio.name)
    db_portfolio = master_data.create_record(db, PortfolioModel, portfolio.model_dump(), user, "portfolios")
    db.commit()
    db.refresh(db_portfolio)
    logger.info(f"Portfolio '{db_portfolio.name}' created by user {user.username}")
    return ok(db_portfolio, "Portfolio created successfully")


@router.get("/", response_model=ApiResponse[Page[Portfolio]])
def read_portfolios(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("portfolios", "view")),
):
    query = db.query(PortfolioModel)
    if search:
        query = query.filter(PortfolioModel.name.ilike(f"%{search.strip()}%"))
    if is_active is not None:
        query = query.filter(PortfolioModel.is_active == is_active)
    rows, pagination = paginate(query.order_by(PortfolioModel.name), page, limit)
    return ok({"items": rows, "pagination": pagination})


@router.get("/{portfolio_id}", response_model=ApiResponse[Portfolio])
def read_portfolio(
    portfolio_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("portfolios", "view")),
):
    return ok(_get_or_404(db, portfolio_id))


@router.patch("/{portfolio_id}", response_model=ApiResponse[Portfolio])
def update_portfolio(
    portfolio_id: int,
    portfolio: PortfolioUpdate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("portfolios", "update")),
):
    db_portfolio = _get_or_404(db, portfolio_id)
    data = portfolio.model_dump(exclude_unset=True)
    master_data.check_unique(db, PortfolioModel, "name", data.get("name"), exclude_id=portfolio_id)
    master_data.update_record(db, db_portfolio, data, user, "portfolios")
    db.commit()
    db.refresh(db_portfolio)
    logger.info(f"Portfolio '{db_portfolio.name}' (ID: {portfolio_id}) updated by user {user.username}")
    return ok(db_portfolio, "Portfolio updated successfully")


@router.delete("/{portfolio_id}", response_model=ApiResponse[dict])
def delete_portfolio(
    portfolio_id: int,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("portfolios", "delete")),
):
    db_portfolio = _get_or_404(db, portfolio_id)
    deactivated = master_data.retire_record(db, db_portfolio, REFERENCES, user, "portfolios", {"is_active": False})
    db.commit()
    if deactivated:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Portfolio '{db_portfolio.name}' is in use. Status changed to inactive.",
        )
    return ok({"id": portfolio_id}, "Portfolio deleted successfully")
