"""Startup seeding of the first admin dashboard account."""

import logging

from sqlalchemy.orm import Session

from campus_pulse.middleware.auth import hash_password
from campus_pulse.models.dashboard_user import DashboardUser

logger = logging.getLogger(__name__)


def ensure_admin(db: Session, email: str, password: str) -> DashboardUser:
    """Get or create an admin account, returning the row. Existing passwords are left alone."""
    email = email.strip().lower()
    user = db.query(DashboardUser).filter(DashboardUser.email == email).first()
    if not user:
        user = DashboardUser(
            email=email,
            password_hash=hash_password(password),
            role="admin",
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Seeded admin account %s", email)
    return user
