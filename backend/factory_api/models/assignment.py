"""
Manager/leader assignments, one table per hierarchy level.

All four tables share the same shape. At most one currently-active row per
scope has is_primary=True; the hierarchy facets enforce this by demoting
the other active rows in the same transaction that writes the new primary.
Rows are never deleted: removal sets end_date.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from .base import Base, EntityMixin, UTCDateTime, utcnow


class ManagerAssignmentMixin(EntityMixin):
    """
    Abstract assignment of a user to a scope entity.

    Concrete classes set __scope_tablename__ to the table of the level they
    belong to.
    """

    __scope_tablename__: str

    @declared_attr
    def scope_id(cls) -> Mapped[str]:
        return mapped_column(
            String(36),
            ForeignKey(f"{cls.__scope_tablename__}.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )

    @declared_attr
    def user_id(cls) -> Mapped[str]:
        return mapped_column(String(36), ForeignKey("app_user.id"), nullable=False, index=True)

    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    start_date: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    # None or a future value means the assignment is active
    end_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    @declared_attr.directive
    def __table_args__(cls):
        return (Index(f"ix_{cls.__tablename__}_scope_user", "scope_id", "user_id"),)

    def is_active_at(self, when: datetime) -> bool:
        return self.end_date is None or self.end_date > when

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__}(scope_id={self.scope_id}, user_id={self.user_id}, "
            f"primary={self.is_primary})>"
        )


class FactoryManager(ManagerAssignmentMixin, Base):
    __tablename__ = "factory_manager"
    __scope_tablename__ = "factory"


class LineManager(ManagerAssignmentMixin, Base):
    __tablename__ = "line_manager"
    __scope_tablename__ = "production_line"


class TeamLeader(ManagerAssignmentMixin, Base):
    __tablename__ = "team_leader"
    __scope_tablename__ = "team"


class GroupLeader(ManagerAssignmentMixin, Base):
    __tablename__ = "group_leader"
    __scope_tablename__ = "work_group"
