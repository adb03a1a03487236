"""
Hierarchy sub-routes shared by the factory, line, team and group modules.

    GET    /<resource>/accessible
    GET    /<resource>/{id}/can-manage
    GET    /<resource>/{id}/children
    GET    /<resource>/{id}/managers
    GET    /<resource>/{id}/managers/history
    POST   /<resource>/{id}/managers
    PATCH  /<resource>/{id}/managers/{user_id}
    DELETE /<resource>/{id}/managers/{user_id}
"""

from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from factory_api.routers.crud.module import CrudModule, RouteHook, get_event_bus
from factory_api.services.domain import ManagerService
from factory_api.services.hierarchy import HierarchyResolver, Level
from factory_shared.infrastructure.db import get_db
from factory_shared.infrastructure.events import EventBus
from factory_shared.security.auth import Requester, current_requester
from factory_shared.utils.schemas import (
    CanManageOutput,
    ManagerAssignmentCreate,
    ManagerAssignmentOutput,
    ManagerAssignmentUpdate,
)


def get_resolver(db: Session = Depends(get_db)) -> HierarchyResolver:
    return HierarchyResolver(db)


def _assignments(rows: list[Any]) -> list[dict[str, Any]]:
    return [ManagerAssignmentOutput.model_validate(r).model_dump(mode="json") for r in rows]


def hierarchy_routes(level: Level, child_output: type[BaseModel] | None) -> RouteHook:
    """Route hook adding the hierarchy sub-routes for one level."""

    def register(router: APIRouter, module: CrudModule) -> None:
        def managers(
            resolver: HierarchyResolver = Depends(get_resolver),
            event_bus: EventBus | None = Depends(get_event_bus),
        ) -> ManagerService:
            return ManagerService(level, resolver, event_bus)

        @router.get("/accessible")
        def accessible(
            requester: Requester = Depends(current_requester),
            service: ManagerService = Depends(managers),
        ) -> dict[str, Any]:
            return {"success": True, "data": service.accessible(requester)}

        @router.get("/{entity_id}/can-manage")
        def can_manage(
            entity_id: str,
            requester: Requester = Depends(current_requester),
            service: ManagerService = Depends(managers),
        ) -> dict[str, Any]:
            result = CanManageOutput(
                entity_id=entity_id,
                level=level.value,
                can_manage=service.can_manage(requester, entity_id),
            )
            return {"success": True, "data": result.model_dump()}

        @router.get("/{entity_id}/children")
        def children(
            entity_id: str,
            requester: Requester = Depends(current_requester),
            service: ManagerService = Depends(managers),
        ) -> dict[str, Any]:
            rows = service.list_children(entity_id)
            data = (
                [child_output.model_validate(r).model_dump(mode="json") for r in rows]
                if child_output is not None
                else []
            )
            return {"success": True, "data": data}

        @router.get("/{entity_id}/managers")
        def list_managers(
            entity_id: str,
            requester: Requester = Depends(current_requester),
            service: ManagerService = Depends(managers),
        ) -> dict[str, Any]:
            return {"success": True, "data": _assignments(service.get_managers(entity_id))}

        @router.get("/{entity_id}/managers/history")
        def manager_history(
            entity_id: str,
            requester: Requester = Depends(current_requester),
            service: ManagerService = Depends(managers),
        ) -> dict[str, Any]:
            return {"success": True, "data": _assignments(service.get_history(requester, entity_id))}

        @router.post("/{entity_id}/managers", status_code=status.HTTP_201_CREATED)
        def add_manager(
            entity_id: str,
            data: ManagerAssignmentCreate,
            requester: Requester = Depends(current_requester),
            service: ManagerService = Depends(managers),
        ) -> dict[str, Any]:
            assignment = service.add_manager(requester, entity_id, data)
            return {"success": True, "data": _assignments([assignment])[0]}

        @router.patch("/{entity_id}/managers/{user_id}")
        def update_manager(
            entity_id: str,
            user_id: str,
            data: ManagerAssignmentUpdate,
            requester: Requester = Depends(current_requester),
            service: ManagerService = Depends(managers),
        ) -> dict[str, Any]:
            """
            Set the primary flag and optionally move the end date.

            An omitted or null end_date leaves the stored one unchanged, so an
            assignment with an end date cannot be made open-ended again here.
            Remove it and assign the user anew instead.
            """
            assignment = service.update_manager(requester, entity_id, user_id, data)
            return {"success": True, "data": _assignments([assignment])[0]}

        @router.delete("/{entity_id}/managers/{user_id}")
        def remove_manager(
            entity_id: str,
            user_id: str,
            requester: Requester = Depends(current_requester),
            service: ManagerService = Depends(managers),
        ) -> dict[str, Any]:
            assignment = service.remove_manager(requester, entity_id, user_id)
            return {"success": True, "data": _assignments([assignment])[0]}

    return register
