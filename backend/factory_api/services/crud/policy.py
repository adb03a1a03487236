"""
Validation and permission hooks for CrudService.

A policy is a strategy object handed to the service at construction time.
The default policy routes every validate_* hook to check_permission, which
allows everything.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol

from factory_shared.security.auth import Requester


class Action(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class CrudPolicy(Protocol):
    def check_permission(self, requester: Requester, action: Action, entity_id: str | None = None) -> None: ...

    def validate_create(self, requester: Requester, data: Any) -> None: ...

    def validate_update(self, requester: Requester, entity: Any, data: Any) -> None: ...

    def validate_delete(self, requester: Requester, entity: Any) -> None: ...


class DefaultPolicy:
    """Allow-all policy. Raise from check_permission to deny."""

    def check_permission(self, requester: Requester, action: Action, entity_id: str | None = None) -> None:
        return None

    def validate_create(self, requester: Requester, data: Any) -> None:
        self.check_permission(requester, Action.CREATE)

    def validate_update(self, requester: Requester, entity: Any, data: Any) -> None:
        self.check_permission(requester, Action.UPDATE, entity.id)

    def validate_delete(self, requester: Requester, entity: Any) -> None:
        self.check_permission(requester, Action.DELETE, entity.id)
