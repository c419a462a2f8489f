import logging
import os

from dotenv import load_dotenv
from sqlalchemy.orm import Session

from medsupply.crud.inventory import refresh_expiry_statuses
from medsupply.crud.stage_permissions import deactivate_expired
from medsupply.database import SessionLocal

load_dotenv()

logger = logging.getLogger(__name__)

NEAR_EXPIRY_DAYS = int(os.getenv("NEAR_EXPIRY_DAYS", "90"))


def run_daily_tasks(db: Session = None) -> dict:
    """
    Nightly housekeeping:
      - flag inventory lots that have expired or are close to expiry;
      - switch off stage permission grants whose expiry date has passed.

    Runs in its own session unless one is passed in; the whole run commits or
    rolls back together.
    """
    owns_session = db is None
    db = db or SessionLocal()
    logger.info("Starting daily housekeeping tasks.")
    try:
        changed = refresh_expiry_statuses(db, NEAR_EXPIRY_DAYS)
        expired_grants = deactivate_expired(db)
        db.commit()
        summary = {"inventory_status_changes": len(changed), "stage_grants_deactivated": expired_grants}
        logger.info(f"Daily housekeeping finished: {summary}")
        return summary
    except Exception as e:
        logger.error(f"Error during daily housekeeping: {e}", exc_info=True)
        db.rollback()
        raise
    finally:
        if owns_session:
            db.close()
