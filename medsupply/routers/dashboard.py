import logging
import os

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from medsupply.crud import dashboard as crud_dashboard
from medsupply.database import get_db
from medsupply.schemas.common import ApiResponse, ok
from medsupply.schemas.dashboard import Dashboard
from medsupply.utils.access import UserContext
from medsupply.utils.auth_utils import require_permission

load_dotenv()

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])
logger = logging.getLogger("dashboard")

NEAR_EXPIRY_DAYS = int(os.getenv("NEAR_EXPIRY_DAYS", "90"))


@router.get("/", response_model=ApiResponse[Dashboard], response_model_exclude_none=True)
def read_dashboard(
    days: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_permission("dashboard", "view")),
):
    """Summary of every module the caller can open; the rest are left out."""
    return ok(crud_dashboard.build(db, user, NEAR_EXPIRY_DAYS, days))
