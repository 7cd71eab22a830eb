"""Create the schema on the configured database and seed an admin account."""

from __future__ import annotations

import argparse
import logging

from bookclub_stage.core.security import create_access_token
from bookclub_stage.db.session import SessionLocal, create_tables
from bookclub_stage.models.user import ROLE_ADMIN, User

logger = logging.getLogger(__name__)


def init_db(admin_name: str | None = None) -> str | None:
    """Create all tables; optionally add an admin and return its access token."""
    create_tables()
    if admin_name is None:
        return None
    with SessionLocal() as db:
        admin = db.query(User).filter(User.display_name == admin_name).first()
        if admin is None:
            admin = User(display_name=admin_name, role=ROLE_ADMIN)
            db.add(admin)
            db.commit()
            logger.info("Created admin %s", admin.id)
        return create_access_token(admin.id)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--admin", help="display name of an admin account to create")
    args = parser.parse_args()
    token = init_db(args.admin)
    print("Database initialized.")
    if token:
        print(f"Admin token: {token}")
