"""Seed the permission catalogue and, optionally, an administrator.

    python scripts/setup_access.py
    python scripts/setup_access.py --admin alice --name "Alice Admin" --email alice@example.com
"""
import argparse
import logging
import os
import sys

from dotenv import load_dotenv

load_dotenv()

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from medsupply.crud.permissions import grant_all, seed_permissions
from medsupply.database import Base, SessionLocal, engine
import medsupply.models  # noqa: F401
from medsupply.models.users import User

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger("setup_access")


def setup_access(db, admin: str = None, name: str = None, email: str = None) -> dict:
    added = seed_permissions(db)
    logger.info(f"{added} permission(s) added to the catalogue")
    result = {"permissions_added": added, "admin": None}
    if admin:
        user = db.query(User).filter(User.username == admin).first()
        if user is None:
            user = User(username=admin, name=name or admin, email=email, role="admin", created_by="system")
            db.add(user)
            db.flush()
            logger.info(f"Created admin user '{admin}'")
        grant_all(db, user)
        logger.info(f"Granted {len(user.permissions)} permission(s) to '{admin}'")
        result["admin"] = admin
    db.commit()
    return result


def main(argv=None):
    parser = argparse.ArgumentParser(description="Seed permissions and grant them to an admin user.")
    parser.add_argument("--admin", help="username to create (if missing) and grant every permission")
    parser.add_argument("--name", help="display name for a newly created admin")
    parser.add_argument("--email", help="email for a newly created admin")
    args = parser.parse_args(argv)

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        setup_access(db, args.admin, args.name, args.email)
    except Exception as e:
        db.rollback()
        logger.error(f"Access setup failed: {e}", exc_info=True)
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
