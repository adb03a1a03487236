"""
Organizational hierarchy: Factory > Line > Team > Group.

Every node except a Factory has exactly one parent.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, OrgUnitMixin


class Factory(OrgUnitMixin, Base):
    """Root of the hierarchy."""

    __tablename__ = "factory"

    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class Line(OrgUnitMixin, Base):
    """Production line inside a factory."""

    __tablename__ = "production_line"

    capacity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    factory_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("factory.id"), nullable=False, index=True
    )


class Team(OrgUnitMixin, Base):
    __tablename__ = "team"

    line_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("production_line.id"), nullable=False, index=True
    )


class Group(OrgUnitMixin, Base):
    # "group" is reserved in SQL
    __tablename__ = "work_group"

    team_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("team.id"), nullable=False, index=True
    )
