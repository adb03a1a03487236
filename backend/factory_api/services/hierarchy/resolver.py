"""
Hierarchy resolver: who can manage what.

Management is inherited downward. A manager of a Line manages every Team
under it and every Group under those Teams without any assignment at the
lower levels. Both queries walk the tree iteratively; the walk never goes
deeper than the number of levels.

Reads are point-in-time per query and take no locks.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from factory_api.models import utcnow
from factory_api.services.hierarchy.facet import HierarchyFacet
from factory_api.services.hierarchy.levels import MAX_DEPTH, Level
from factory_api.services.hierarchy.locks import ScopeLockManager
from factory_api.services.hierarchy.roles import RoleLookup
from factory_shared.config.logging import get_logger

logger = get_logger(__name__)


class HierarchyResolver:
    def __init__(
        self,
        session: Session,
        roles: RoleLookup | None = None,
        locks: ScopeLockManager | None = None,
    ):
        self._roles = roles or RoleLookup(session)
        self._facets = {
            level: HierarchyFacet(level, session, self._roles, locks) for level in Level
        }

    @property
    def roles(self) -> RoleLookup:
        return self._roles

    def facet(self, level: Level) -> HierarchyFacet:
        return self._facets[level]

    def can_manage(self, user_id: str, entity_id: str, level: Level) -> bool:
        """
        True if the user manages the entity or any of its ancestors.

        An unknown entity_id is managed only by global admins.
        """
        now = utcnow()
        if self._roles.is_global_admin(user_id, now):
            return True

        current_level: Level | None = level
        current_id: str | None = entity_id
        for _ in range(MAX_DEPTH):
            if current_level is None or current_id is None:
                break
            facet = self._facets[current_level]
            if facet.is_manager(user_id, current_id, now):
                return True
            current_id = facet.parent_id(current_id)
            current_level = current_level.parent
        return False

    def accessible_entities(self, user_id: str, level: Level) -> list[str]:
        """
        Ids at `level` the user can manage, sorted.

        Starting at the root, the accessible set of each level is its direct
        scopes plus the children of the accessible set one level up.
        """
        if self._roles.is_global_admin(user_id):
            return sorted(self._facets[level].all_ids())

        now = utcnow()
        accessible: set[str] = set()
        current: Level | None = Level.FACTORY
        while current is not None and current.depth <= level.depth:
            facet = self._facets[current]
            accessible = facet.direct_scope_ids(user_id, now) | facet.child_ids(accessible)
            current = current.child
        return sorted(accessible)

    def get_managerial_access(self, user_id: str) -> dict[str, list[str]]:
        """Accessible ids for every level, keyed by plural level name."""
        access = {
            "factories": self.accessible_entities(user_id, Level.FACTORY),
            "lines": self.accessible_entities(user_id, Level.LINE),
            "teams": self.accessible_entities(user_id, Level.TEAM),
            "groups": self.accessible_entities(user_id, Level.GROUP),
        }
        logger.debug(
            "Resolved managerial access",
            user_id=user_id,
            **{name: len(ids) for name, ids in access.items()},
        )
        return access
