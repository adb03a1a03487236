"""
Users and scoped role assignments.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, EntityMixin, UTCDateTime


class User(EntityMixin, Base):
    """
    Minimal user record. Credentials live in the identity service; this
    table only backs assignment foreign keys and existence checks.
    """

    __tablename__ = "app_user"

    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    role_code: Mapped[str] = mapped_column(String(30), nullable=False, default="WORKER")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}', role={self.role_code})>"


class UserRoleAssignment(EntityMixin, Base):
    """
    Role granted to a user, optionally limited to a scope and an expiry.

    scope uses "<level>:<id>", e.g. "line:3f2c...". ADMIN and SUPER_ADMIN
    are scope-free.
    """

    __tablename__ = "user_role_assignment"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("app_user.id"), nullable=False, index=True
    )
    role_code: Mapped[str] = mapped_column(String(30), nullable=False)
    scope: Mapped[Optional[str]] = mapped_column(String(80), nullable=True, index=True)
    expiry_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
