"""
Generic CRUD service.

CrudService turns create/read/list/update/delete requests into validated,
authorized and audited operations over any CrudRepository. Entity rules
come from the CrudPolicy it is given, not from subclassing.

Usage:
    service = CrudService(
        SqlAlchemyRepository(Line, db),
        entity_name="Line",
        policy=OrgUnitPolicy(...),
        event_bus=bus,
    )
    line_id = service.create_entity(requester, LineCreate(...))
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from factory_api.models import Base, new_id, utcnow
from factory_api.services.crud.policy import Action, CrudPolicy, DefaultPolicy
from factory_api.services.crud.repository import CrudRepository, EntityFilter, Paginated, Paging
from factory_shared.config.logging import audit_logger, get_logger
from factory_shared.infrastructure.events import (
    ENTITY_CREATED,
    ENTITY_DELETED,
    ENTITY_UPDATED,
    EventBus,
)
from factory_shared.security.auth import Requester
from factory_shared.utils.exceptions import AppException, NotFoundError, normalize_error

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=Base)
CreateT = TypeVar("CreateT", bound=BaseModel)
UpdateT = TypeVar("UpdateT", bound=BaseModel)


class CrudService(Generic[ModelT, CreateT, UpdateT]):
    """
    Orchestrates CRUD over a repository.

    Every mutation writes one audit line ("<Action> <Entity> <id> by <user>")
    and publishes an ENTITY_* event. Typed AppExceptions propagate as they
    are; anything else is normalized to a 400 AppException.
    """

    def __init__(
        self,
        repository: CrudRepository[ModelT],
        entity_name: str,
        policy: CrudPolicy | None = None,
        event_bus: EventBus | None = None,
    ):
        self._repo = repository
        self._entity_name = entity_name
        self._policy = policy or DefaultPolicy()
        self._event_bus = event_bus

    @property
    def repo(self) -> CrudRepository[ModelT]:
        return self._repo

    @property
    def policy(self) -> CrudPolicy:
        return self._policy

    @property
    def entity_name(self) -> str:
        return self._entity_name

    # =========================================================================
    # Read Operations
    # =========================================================================

    def get_entity(self, entity_id: str) -> ModelT:
        """
        Fetch an entity or fail.

        Raises:
            NotFoundError: If the repository has no entity with this id.
        """
        try:
            entity = self._repo.get(entity_id)
        except AppException:
            raise
        except Exception as e:
            raise normalize_error(e, f"Failed to get {self._entity_name}") from e

        if entity is None:
            raise NotFoundError(self._entity_name, entity_id)
        return entity

    def list_entities(
        self,
        requester: Requester,
        condition: EntityFilter | None = None,
        paging: Paging | None = None,
    ) -> Paginated[ModelT]:
        try:
            self._policy.check_permission(requester, Action.READ)
            return self._repo.list(condition or EntityFilter(), paging or Paging.normalize())
        except AppException:
            raise
        except Exception as e:
            raise normalize_error(e, f"Failed to list {self._entity_name}") from e

    # =========================================================================
    # Write Operations
    # =========================================================================

    def create_entity(self, requester: Requester, data: CreateT) -> str:
        """Validate, insert and audit a new entity. Returns its id."""
        try:
            self._policy.validate_create(requester, data)

            now = utcnow()
            entity = self._repo.model(
                id=new_id(),
                created_at=now,
                updated_at=now,
                **data.model_dump(),
            )
            entity_id = self._repo.insert(entity)
        except AppException:
            raise
        except Exception as e:
            raise normalize_error(e, f"Failed to create {self._entity_name}") from e

        self._audit("Created", entity_id, requester)
        self._publish(ENTITY_CREATED, entity_id, requester)
        return entity_id

    def update_entity(self, requester: Requester, entity_id: str, data: UpdateT) -> None:
        """Fetch, validate and partially update an entity."""
        try:
            entity = self.get_entity(entity_id)
            self._policy.validate_update(requester, entity, data)
            changes = data.model_dump(exclude_unset=True)
            self._repo.update(entity_id, changes)
        except AppException:
            raise
        except Exception as e:
            raise normalize_error(e, f"Failed to update {self._entity_name}") from e

        self._audit("Updated", entity_id, requester)
        self._publish(ENTITY_UPDATED, entity_id, requester, fields=sorted(changes))

    def delete_entity(self, requester: Requester, entity_id: str) -> None:
        """Fetch, validate and hard-delete an entity."""
        try:
            entity = self.get_entity(entity_id)
            self._policy.validate_delete(requester, entity)
            self._repo.delete(entity_id)
        except AppException:
            raise
        except Exception as e:
            raise normalize_error(e, f"Failed to delete {self._entity_name}") from e

        self._audit("Deleted", entity_id, requester)
        self._publish(ENTITY_DELETED, entity_id, requester)

    # =========================================================================
    # Side effects
    # =========================================================================

    def _audit(self, action: str, entity_id: str, requester: Requester) -> None:
        audit_logger.info(
            f"{action} {self._entity_name} {entity_id} by {requester.subject_id}",
            action=action.lower(),
            entity=self._entity_name,
            entity_id=entity_id,
            actor=requester.subject_id,
        )

    def _publish(self, event_name: str, entity_id: str, requester: Requester, **extra: Any) -> None:
        if self._event_bus is None:
            return
        payload = {"entity": self._entity_name, "id": entity_id, **extra}
        self._event_bus.publish(event_name, payload, requester.subject_id)
