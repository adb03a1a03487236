"""
Module assembler.

CrudModule is instantiated once per concrete module from a
CrudModuleOptions record and wires repository -> service -> controller ->
APIRouter. It holds no business rules: entities differ only through the
policy factory, the schemas and the endpoint flags.

Usage:
    lines = CrudModule(CrudModuleOptions(
        entity_name="Line",
        path="/lines",
        model=Line,
        create_schema=LineCreate,
        update_schema=LineUpdate,
        filter_schema=LineFilter,
        output_schema=LineOutput,
        build_filter=line_filter,
        policy_factory=lambda repo, db: OrgUnitPolicy(Level.LINE, repo, HierarchyResolver(db)),
    ))
    app.include_router(lines.router)
"""

# Route signatures below use the schema classes of the options record as
# annotations, so annotations must stay evaluated (no postponed evaluation).

from collections.abc import Callable, Collection, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from factory_api.routers._common.pagination import get_paging
from factory_api.routers.crud.controller import CrudController, EndpointFlags
from factory_api.services.crud.policy import CrudPolicy
from factory_api.services.crud.repository import (
    CrudRepository,
    EntityFilter,
    Paging,
    SqlAlchemyRepository,
)
from factory_api.services.crud.service import CrudService
from factory_shared.infrastructure.db import get_db
from factory_shared.infrastructure.events import EventBus
from factory_shared.security.auth import Requester, current_requester, require_roles
from factory_shared.utils.exceptions import EndpointDisabledError

ModelT = TypeVar("ModelT")
CreateT = TypeVar("CreateT", bound=BaseModel)
UpdateT = TypeVar("UpdateT", bound=BaseModel)

RepositoryFactory = Callable[[type, Session], CrudRepository]
PolicyFactory = Callable[[CrudRepository, Session], CrudPolicy]
RouteHook = Callable[[APIRouter, "CrudModule"], None]


def get_event_bus(request: Request) -> EventBus | None:
    """FastAPI dependency returning the bus built by the app lifespan."""
    return getattr(request.app.state, "event_bus", None)


@dataclass
class CrudModuleOptions(Generic[ModelT, CreateT, UpdateT]):
    """Declarative description of one CRUD module."""

    entity_name: str
    path: str
    model: type[ModelT]
    create_schema: type[CreateT]
    update_schema: type[UpdateT]
    filter_schema: type[BaseModel]
    output_schema: type[BaseModel]
    # Turns a parsed filter_schema instance into a typed EntityFilter
    build_filter: Callable[[Any], EntityFilter]
    repository_factory: RepositoryFactory = SqlAlchemyRepository
    policy_factory: PolicyFactory | None = None
    endpoints: EndpointFlags = field(default_factory=EndpointFlags)
    # Roles allowed to call create/update/delete; global admins always pass
    required_roles: Collection[str] = ()
    # Registered before the CRUD routes so static paths win over /{entity_id}
    extra_routes: Sequence[RouteHook] = ()
    tags: Sequence[str] = ()


class CrudModule(Generic[ModelT, CreateT, UpdateT]):
    def __init__(self, options: CrudModuleOptions[ModelT, CreateT, UpdateT]):
        self._options = options
        self._router = self._build_router()

    @property
    def options(self) -> CrudModuleOptions[ModelT, CreateT, UpdateT]:
        return self._options

    @property
    def router(self) -> APIRouter:
        return self._router

    # =========================================================================
    # Wiring
    # =========================================================================

    def service(self, db: Session, event_bus: EventBus | None) -> CrudService[ModelT, CreateT, UpdateT]:
        opts = self._options
        repository = opts.repository_factory(opts.model, db)
        policy = opts.policy_factory(repository, db) if opts.policy_factory else None
        return CrudService(repository, opts.entity_name, policy=policy, event_bus=event_bus)

    def controller(self, db: Session, event_bus: EventBus | None) -> CrudController[CreateT, UpdateT]:
        return CrudController(self.service(db, event_bus), self._options.endpoints, self.serialize)

    def serialize(self, entity: Any) -> dict[str, Any]:
        return self._options.output_schema.model_validate(entity).model_dump(mode="json")

    def writer(self, requester: Requester = Depends(current_requester)) -> Requester:
        """Dependency admitting only the roles allowed to mutate."""
        require_roles(requester, self._options.required_roles)
        return requester

    def _build_router(self) -> APIRouter:
        opts = self._options
        router = APIRouter(prefix=opts.path, tags=list(opts.tags) or [opts.entity_name])

        for hook in opts.extra_routes:
            hook(router, self)

        create_schema = opts.create_schema
        update_schema = opts.update_schema
        filter_schema = opts.filter_schema
        writer = self.writer

        def create_entity(
            data: create_schema,
            requester: Requester = Depends(writer),
            db: Session = Depends(get_db),
            event_bus: EventBus | None = Depends(get_event_bus),
        ) -> dict[str, Any]:
            return self.controller(db, event_bus).create(requester, data)

        def list_entities(
            filters: filter_schema = Depends(),
            paging: Paging = Depends(get_paging),
            requester: Requester = Depends(current_requester),
            db: Session = Depends(get_db),
        ) -> dict[str, Any]:
            return self.controller(db, None).list(requester, opts.build_filter(filters), paging)

        def get_entity(
            entity_id: str,
            requester: Requester = Depends(current_requester),
            db: Session = Depends(get_db),
        ) -> dict[str, Any]:
            return self.controller(db, None).get_by_id(entity_id)

        def update_entity(
            entity_id: str,
            data: update_schema,
            requester: Requester = Depends(writer),
            db: Session = Depends(get_db),
            event_bus: EventBus | None = Depends(get_event_bus),
        ) -> dict[str, Any]:
            return self.controller(db, event_bus).update(requester, entity_id, data)

        def delete_entity(
            entity_id: str,
            requester: Requester = Depends(writer),
            db: Session = Depends(get_db),
            event_bus: EventBus | None = Depends(get_event_bus),
        ) -> dict[str, Any]:
            return self.controller(db, event_bus).delete(requester, entity_id)

        routes = (
            ("create", "", "POST", create_entity, status.HTTP_201_CREATED),
            ("list", "", "GET", list_entities, status.HTTP_200_OK),
            ("get", "/{entity_id}", "GET", get_entity, status.HTTP_200_OK),
            ("update", "/{entity_id}", "PATCH", update_entity, status.HTTP_200_OK),
            ("delete", "/{entity_id}", "DELETE", delete_entity, status.HTTP_200_OK),
        )
        for operation, path, method, endpoint, status_code in routes:
            if not opts.endpoints.enabled(operation):
                # No body, no auth: a disabled operation fails the same way for every request
                endpoint = _disabled_endpoint(operation, opts.entity_name)
            router.add_api_route(path, endpoint, methods=[method], status_code=status_code)

        return router


def _disabled_endpoint(operation: str, entity_name: str) -> Callable[[], dict[str, Any]]:
    def disabled() -> dict[str, Any]:
        raise EndpointDisabledError(operation, entity=entity_name)

    disabled.__name__ = f"{operation}_disabled"
    return disabled
