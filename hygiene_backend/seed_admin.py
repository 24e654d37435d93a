from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from hygiene_backend.config import settings
from hygiene_backend.db import init_db, session_scope
from hygiene_backend.logging_config import setup_logging
from hygiene_backend.models import User
from hygiene_backend.security import get_password_hash

logger = logging.getLogger(__name__)


def seed_admin(db: Session) -> User:
    """Create the admin from ADMIN_EMAIL / ADMIN_PASSWORD unless an admin already exists."""
    existing = db.query(User).filter(User.role == "admin").first()
    if existing:
        logger.info("Admin already exists: %s", existing.email)
        return existing

    admin = User(
        username="admin",
        email=settings.ADMIN_EMAIL,
        hashed_password=get_password_hash(settings.ADMIN_PASSWORD),
        first_name="System",
        last_name="Administrator",
        role="admin",
    )
    db.add(admin)
    db.flush()
    logger.info("Admin user created: %s", admin.email)
    return admin


if __name__ == "__main__":
    setup_logging()
    init_db()
    with session_scope() as db:
        seed_admin(db)
