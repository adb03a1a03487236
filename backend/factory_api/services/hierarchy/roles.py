"""
Role lookup for the hierarchy resolver.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from factory_api.models import User, UserRoleAssignment, utcnow
from factory_shared.config.constants import GLOBAL_ADMIN_ROLES


@dataclass(frozen=True)
class RoleGrant:
    role: str
    scope: str | None
    expiry: datetime | None

    def is_active_at(self, when: datetime) -> bool:
        return self.expiry is None or self.expiry > when


class RoleLookup:
    """Reads role assignments and the user's base role code."""

    def __init__(self, session: Session):
        self._session = session

    def get_user_roles(self, user_id: str) -> list[RoleGrant]:
        """Every role assignment of the user, expired ones included."""
        rows = self._session.scalars(
            select(UserRoleAssignment)
            .where(UserRoleAssignment.user_id == user_id)
            .order_by(UserRoleAssignment.created_at)
        ).all()
        return [RoleGrant(r.role_code, r.scope, r.expiry_date) for r in rows]

    def _active_assignments(self, user_id: str, now: datetime):
        return select(UserRoleAssignment).where(
            UserRoleAssignment.user_id == user_id,
            or_(
                UserRoleAssignment.expiry_date.is_(None),
                UserRoleAssignment.expiry_date > now,
            ),
        )

    def is_global_admin(self, user_id: str, now: datetime | None = None) -> bool:
        """ADMIN/SUPER_ADMIN as base role or as an unexpired assignment."""
        now = now or utcnow()
        base_role = self._session.scalar(select(User.role_code).where(User.id == user_id))
        if base_role in GLOBAL_ADMIN_ROLES:
            return True
        query = self._active_assignments(user_id, now).where(
            UserRoleAssignment.role_code.in_(GLOBAL_ADMIN_ROLES)
        )
        return self._session.scalar(query.limit(1)) is not None

    def has_scoped_role(self, user_id: str, role_code: str, scope: str, now: datetime | None = None) -> bool:
        query = self._active_assignments(user_id, now or utcnow()).where(
            UserRoleAssignment.role_code == role_code,
            UserRoleAssignment.scope == scope,
        )
        return self._session.scalar(query.limit(1)) is not None

    def scoped_ids(self, user_id: str, role_code: str, prefix: str, now: datetime | None = None) -> set[str]:
        """Ids named by the user's active "<prefix>:<id>" scopes for role_code."""
        query = self._active_assignments(user_id, now or utcnow()).where(
            UserRoleAssignment.role_code == role_code,
            UserRoleAssignment.scope.startswith(f"{prefix}:"),
        )
        return {row.scope.split(":", 1)[1] for row in self._session.scalars(query).all()}
