"""
SQLAlchemy ORM Models Package.

- base: Base class, UTCDateTime, EntityMixin, OrgUnitMixin
- hierarchy: Factory, Line, Team, Group
- assignment: FactoryManager, LineManager, TeamLeader, GroupLeader
- user: User, UserRoleAssignment
"""

from .base import Base, EntityMixin, OrgUnitMixin, UTCDateTime, new_id, utcnow
from .hierarchy import Factory, Group, Line, Team
from .assignment import (
    FactoryManager,
    GroupLeader,
    LineManager,
    ManagerAssignmentMixin,
    TeamLeader,
)
from .user import User, UserRoleAssignment

__all__ = [
    "Base",
    "EntityMixin",
    "OrgUnitMixin",
    "UTCDateTime",
    "new_id",
    "utcnow",
    "Factory",
    "Line",
    "Team",
    "Group",
    "ManagerAssignmentMixin",
    "FactoryManager",
    "LineManager",
    "TeamLeader",
    "GroupLeader",
    "User",
    "UserRoleAssignment",
]
