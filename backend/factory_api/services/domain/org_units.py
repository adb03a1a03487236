"""
Policy for the four organizational units (Factory, Line, Team, Group).

Rules:
- Only global admins create factories. Creating anything else requires
  managing the new parent.
- Updating or deleting requires managing the entity itself (or one of its
  ancestors).
- The parent must exist (404).
- Codes are unique per entity type across the whole system; names are
  unique among siblings (400).
- An entity with children cannot be deleted (400).
"""

from __future__ import annotations

from typing import Any

from factory_api.services.crud.policy import Action
from factory_api.services.crud.repository import CrudRepository, FilterBuilder
from factory_api.services.hierarchy import HierarchyResolver, Level
from factory_shared.security.auth import Requester
from factory_shared.utils.exceptions import (
    DependentEntitiesError,
    DuplicateEntityError,
    ForbiddenError,
    NotFoundError,
)


class OrgUnitPolicy:
    """CrudPolicy for one hierarchy level."""

    def __init__(self, level: Level, repository: CrudRepository, resolver: HierarchyResolver):
        self._level = level
        self._spec = level.spec
        self._repo = repository
        self._resolver = resolver

    @property
    def level(self) -> Level:
        return self._level

    def _can_manage(self, requester: Requester, entity_id: str, level: Level) -> bool:
        if requester.is_global_admin:
            return True
        return self._resolver.can_manage(requester.subject_id, entity_id, level)

    def check_permission(self, requester: Requester, action: Action, entity_id: str | None = None) -> None:
        """
        For CREATE, entity_id is the id of the future parent.
        READ is open to every authenticated requester.
        """
        if action == Action.READ or requester.is_global_admin:
            return

        if action == Action.CREATE:
            parent = self._level.parent
            if parent is None or entity_id is None or not self._can_manage(requester, entity_id, parent):
                raise ForbiddenError(
                    f"create {self._spec.label.lower()}s here",
                    user_id=requester.subject_id,
                    parent_id=entity_id,
                )
            return

        if entity_id is None or not self._can_manage(requester, entity_id, self._level):
            raise ForbiddenError(
                f"{action.value} this {self._spec.label.lower()}",
                user_id=requester.subject_id,
                entity_id=entity_id,
            )

    # =========================================================================
    # Hooks
    # =========================================================================

    def validate_create(self, requester: Requester, data: Any) -> None:
        parent_id = self._parent_of(data)
        if parent_id is not None:
            self._ensure_parent_exists(parent_id)
        self.check_permission(requester, Action.CREATE, parent_id)
        self._ensure_unique_code(data.code)
        self._ensure_unique_name(data.name, parent_id)

    def validate_update(self, requester: Requester, entity: Any, data: Any) -> None:
        self.check_permission(requester, Action.UPDATE, entity.id)

        current_parent = self._parent_of(entity)
        new_parent = self._parent_of(data) or current_parent
        if new_parent != current_parent:
            self._ensure_parent_exists(new_parent)
            # Moving a node needs management of the destination too
            self.check_permission(requester, Action.CREATE, new_parent)

        if data.code is not None and data.code != entity.code:
            self._ensure_unique_code(data.code, exclude_id=entity.id)

        new_name = data.name if data.name is not None else entity.name
        if new_name != entity.name or new_parent != current_parent:
            self._ensure_unique_name(new_name, new_parent, exclude_id=entity.id)

    def validate_delete(self, requester: Requester, entity: Any) -> None:
        self.check_permission(requester, Action.DELETE, entity.id)
        if self._resolver.facet(self._level).has_children(entity.id):
            child = self._level.child
            raise DependentEntitiesError(self._spec.label, entity.id, f"{child.value}s")

    # =========================================================================
    # Checks
    # =========================================================================

    def _parent_of(self, obj: Any) -> str | None:
        field = self._spec.parent_field
        return getattr(obj, field, None) if field else None

    def _ensure_parent_exists(self, parent_id: str) -> None:
        parent = self._level.parent
        if not self._resolver.facet(parent).exists(parent_id):
            raise NotFoundError(parent.spec.label, parent_id)

    def _ensure_unique_code(self, code: str, exclude_id: str | None = None) -> None:
        found = self._repo.find_by_cond(FilterBuilder().eq("code", code).build())
        if found is not None and found.id != exclude_id:
            raise DuplicateEntityError(self._spec.label, "code", code)

    def _ensure_unique_name(self, name: str, parent_id: str | None, exclude_id: str | None = None) -> None:
        builder = FilterBuilder().eq("name", name)
        if self._spec.parent_field is not None:
            builder.eq(self._spec.parent_field, parent_id)
        found = self._repo.find_by_cond(builder.build())
        if found is not None and found.id != exclude_id:
            raise DuplicateEntityError(self._spec.label, "name", name)
