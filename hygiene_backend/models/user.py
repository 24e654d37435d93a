# hygiene_backend/models/user.py
from __future__ import annotations

import uuid

from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import validates

from ..db import Base


ROLES = ("user", "admin")


class User(Base):
    __tablename__ = "users"

    id = Column(
        String,
        primary_key=True,
        index=True,
        default=lambda: str(uuid.uuid4()),
    )
    username = Column(String(30), unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    hashed_password = Column(String, nullable=False)
    first_name = Column(String(50), nullable=True)
    last_name = Column(String(50), nullable=True)
    phone_number = Column(String, nullable=True)

    # Roles: "user", "admin"
    role = Column(String, nullable=False, default="user")

    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    @validates("role")
    def normalize_role(self, key, value: str | None) -> str:
        """
        Roles are stored lower-case; anything unknown falls back to "user".
        """
        if not value:
            return "user"
        value = value.strip().lower()
        return value if value in ROLES else "user"

    @validates("email")
    def normalize_email(self, key, value: str) -> str:
        return value.strip().lower()

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def display_name(self) -> str:
        full = " ".join(p for p in (self.first_name, self.last_name) if p)
        return full or self.username
