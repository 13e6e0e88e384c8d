"""
Bootstrap script – creates the first admin user.

Run once after the initial migration:
    python bin/seed_admin.py

Reads FIRST_ADMIN_EMAIL, FIRST_ADMIN_PASSWORD and FIRST_ADMIN_NAME from
etc/app.conf (or the environment).  Because the last admin can never be
demoted or deleted, the account created here is the anchor that keeps the
admin pages reachable.
"""

import sys
import os

# bin/seed_admin.py  →  ../backend
_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_BACKEND_DIR = os.path.join(_PROJECT_ROOT, "backend")
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

from core.config import settings          # noqa: E402
from core.logger import logger            # noqa: E402
from core.security import hash_password   # noqa: E402
from database import SessionLocal         # noqa: E402
from models.user import Role, User        # noqa: E402
import models.announcement                # noqa: F401, E402


def seed() -> int:
    if not settings.first_admin_email or not settings.first_admin_password:
        logger.warning("FIRST_ADMIN_EMAIL or FIRST_ADMIN_PASSWORD not set – nothing to do")
        return 1

    email = settings.first_admin_email.strip().lower()
    db = SessionLocal()
    try:
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            if existing.role != Role.admin:
                existing.role = Role.admin
                db.commit()
                logger.info("Promoted existing user '%s' to admin", email)
            else:
                logger.info("Admin '%s' already exists – skipping", email)
            return 0

        db.add(
            User(
                email=email,
                password_hash=hash_password(settings.first_admin_password),
                name=settings.first_admin_name,
                role=Role.admin,
            )
        )
        db.commit()
        logger.info("Admin '%s' created", email)
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(seed())
