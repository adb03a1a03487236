"""
Manager assignment operations exposed by every hierarchy module.

Wraps a HierarchyFacet with the permission check, the audit line and the
MANAGER_* events. Writes require that the requester can manage the scope.
"""

from __future__ import annotations

from typing import Any

from factory_api.models import ManagerAssignmentMixin
from factory_api.services.hierarchy import HierarchyResolver, Level
from factory_shared.config.logging import audit_logger, get_logger
from factory_shared.infrastructure.events import (
    MANAGER_ASSIGNED,
    MANAGER_REMOVED,
    MANAGER_UPDATED,
    EventBus,
)
from factory_shared.security.auth import Requester
from factory_shared.utils.exceptions import ForbiddenError, NotFoundError
from factory_shared.utils.schemas import ManagerAssignmentCreate, ManagerAssignmentUpdate

logger = get_logger(__name__)


class ManagerService:
    def __init__(self, level: Level, resolver: HierarchyResolver, event_bus: EventBus | None = None):
        self._level = level
        self._label = level.spec.label
        self._resolver = resolver
        self._facet = resolver.facet(level)
        self._event_bus = event_bus

    @property
    def level(self) -> Level:
        return self._level

    # =========================================================================
    # Queries
    # =========================================================================

    def _ensure_exists(self, entity_id: str) -> None:
        if not self._facet.exists(entity_id):
            raise NotFoundError(self._label, entity_id)

    def can_manage(self, requester: Requester, entity_id: str) -> bool:
        self._ensure_exists(entity_id)
        if requester.is_global_admin:
            return True
        return self._resolver.can_manage(requester.subject_id, entity_id, self._level)

    def accessible(self, requester: Requester) -> list[str]:
        if requester.is_global_admin:
            return sorted(self._facet.all_ids())
        return self._resolver.accessible_entities(requester.subject_id, self._level)

    def list_children(self, entity_id: str) -> list[Any]:
        """Direct children of the entity, one level down."""
        self._ensure_exists(entity_id)
        child = self._level.child
        if child is None:
            return []
        return self._resolver.facet(child).list_children(entity_id)

    def get_managers(self, entity_id: str) -> list[ManagerAssignmentMixin]:
        self._ensure_exists(entity_id)
        return self._facet.get_managers(entity_id)

    def get_history(self, requester: Requester, entity_id: str) -> list[ManagerAssignmentMixin]:
        self._require_manage(requester, entity_id, "view manager history")
        return self._facet.get_history(entity_id)

    # =========================================================================
    # Writes
    # =========================================================================

    def _require_manage(self, requester: Requester, entity_id: str, action: str) -> None:
        if not self.can_manage(requester, entity_id):
            raise ForbiddenError(
                f"{action} of this {self._label.lower()}",
                user_id=requester.subject_id,
                entity_id=entity_id,
            )

    def add_manager(
        self, requester: Requester, entity_id: str, data: ManagerAssignmentCreate
    ) -> ManagerAssignmentMixin:
        self._require_manage(requester, entity_id, "assign managers")
        assignment = self._facet.add_manager(entity_id, data)
        self._record("Assigned", MANAGER_ASSIGNED, requester, entity_id, data.user_id, is_primary=data.is_primary)
        return assignment

    def update_manager(
        self, requester: Requester, entity_id: str, user_id: str, data: ManagerAssignmentUpdate
    ) -> ManagerAssignmentMixin:
        self._require_manage(requester, entity_id, "change managers")
        assignment = self._facet.update_manager(entity_id, user_id, data.is_primary, data.end_date)
        self._record("Updated", MANAGER_UPDATED, requester, entity_id, user_id, is_primary=data.is_primary)
        return assignment

    def remove_manager(self, requester: Requester, entity_id: str, user_id: str) -> ManagerAssignmentMixin:
        self._require_manage(requester, entity_id, "remove managers")
        assignment = self._facet.remove_manager(entity_id, user_id)
        self._record("Removed", MANAGER_REMOVED, requester, entity_id, user_id)
        return assignment

    def _record(
        self,
        action: str,
        event_name: str,
        requester: Requester,
        entity_id: str,
        user_id: str,
        **extra: Any,
    ) -> None:
        audit_logger.info(
            f"{action} manager {user_id} on {self._label} {entity_id} by {requester.subject_id}",
            action=action.lower(),
            entity=self._label,
            entity_id=entity_id,
            manager_id=user_id,
            actor=requester.subject_id,
        )
        if self._event_bus is not None:
            payload = {"level": self._level.value, "entity_id": entity_id, "user_id": user_id, **extra}
            self._event_bus.publish(event_name, payload, requester.subject_id)
