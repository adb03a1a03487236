"""
Generic CRUD controller.

Maps create/list/get_by_id/update/delete onto a CrudService and returns
success envelopes. Each operation checks its endpoint flag first: a
disabled operation fails with 404 "Endpoint not available" before the
service is touched, whatever the payload.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from factory_api.routers._common.pagination import paginated_envelope
from factory_api.services.crud.repository import EntityFilter, Paging
from factory_api.services.crud.service import CrudService
from factory_shared.security.auth import Requester
from factory_shared.utils.exceptions import AppException, EndpointDisabledError, normalize_error

CreateT = TypeVar("CreateT", bound=BaseModel)
UpdateT = TypeVar("UpdateT", bound=BaseModel)


@dataclass(frozen=True)
class EndpointFlags:
    create: bool = True
    list: bool = True
    get: bool = True
    update: bool = True
    delete: bool = True

    def enabled(self, operation: str) -> bool:
        return bool(getattr(self, operation))


class CrudController(Generic[CreateT, UpdateT]):
    def __init__(
        self,
        service: CrudService[Any, CreateT, UpdateT],
        endpoints: EndpointFlags,
        serialize: Callable[[Any], dict[str, Any]],
    ):
        self._service = service
        self._endpoints = endpoints
        self._serialize = serialize

    @property
    def service(self) -> CrudService[Any, CreateT, UpdateT]:
        return self._service

    def _ensure_enabled(self, operation: str) -> None:
        if not self._endpoints.enabled(operation):
            raise EndpointDisabledError(operation, entity=self._service.entity_name)

    def _run(self, operation: str, call: Callable[[], dict[str, Any]]) -> dict[str, Any]:
        self._ensure_enabled(operation)
        try:
            return call()
        except AppException:
            raise
        except Exception as e:
            raise normalize_error(e, f"{operation} {self._service.entity_name} failed") from e

    def create(self, requester: Requester, data: CreateT) -> dict[str, Any]:
        def call() -> dict[str, Any]:
            entity_id = self._service.create_entity(requester, data)
            return {"success": True, "data": self._serialize(self._service.get_entity(entity_id))}

        return self._run("create", call)

    def list(self, requester: Requester, condition: EntityFilter, paging: Paging) -> dict[str, Any]:
        def call() -> dict[str, Any]:
            result = self._service.list_entities(requester, condition, paging)
            return paginated_envelope(result, [self._serialize(e) for e in result.data])

        return self._run("list", call)

    def get_by_id(self, entity_id: str) -> dict[str, Any]:
        return self._run(
            "get",
            lambda: {"success": True, "data": self._serialize(self._service.get_entity(entity_id))},
        )

    def update(self, requester: Requester, entity_id: str, data: UpdateT) -> dict[str, Any]:
        def call() -> dict[str, Any]:
            self._service.update_entity(requester, entity_id, data)
            return {"success": True, "data": self._serialize(self._service.get_entity(entity_id))}

        return self._run("update", call)

    def delete(self, requester: Requester, entity_id: str) -> dict[str, Any]:
        def call() -> dict[str, Any]:
            self._service.delete_entity(requester, entity_id)
            return {"success": True, "data": {"id": entity_id}}

        return self._run("delete", call)
