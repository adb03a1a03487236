"""
Factory, Line, Team and Group modules.

Each is a CrudModule over its model with OrgUnitPolicy and the hierarchy
sub-routes. Writes are open to the management roles; the policy then
checks that the requester manages the entity (or its new parent).
"""

from sqlalchemy.orm import Session

from factory_api.models import Factory, Group, Line, Team
from factory_api.routers.crud import CrudModule, CrudModuleOptions
from factory_api.routers.hierarchy import hierarchy_routes
from factory_api.services.crud import CrudRepository, EntityFilter, FilterBuilder
from factory_api.services.domain import OrgUnitPolicy
from factory_api.services.hierarchy import HierarchyResolver, Level
from factory_shared.config.constants import MANAGEMENT_ROLES
from factory_shared.utils.schemas import (
    FactoryCreate,
    FactoryFilter,
    FactoryOutput,
    FactoryUpdate,
    GroupCreate,
    GroupFilter,
    GroupOutput,
    GroupUpdate,
    LineCreate,
    LineFilter,
    LineOutput,
    LineUpdate,
    TeamCreate,
    TeamFilter,
    TeamOutput,
    TeamUpdate,
)


def _policy(level: Level):
    def build(repository: CrudRepository, db: Session) -> OrgUnitPolicy:
        return OrgUnitPolicy(level, repository, HierarchyResolver(db))

    return build


def _base_filter(filters) -> FilterBuilder:
    return (
        FilterBuilder()
        .eq("code", filters.code)
        .contains("name", filters.name)
        .search(filters.search)
    )


def factory_filter(filters: FactoryFilter) -> EntityFilter:
    return _base_filter(filters).build()


def line_filter(filters: LineFilter) -> EntityFilter:
    return _base_filter(filters).eq("factory_id", filters.factory_id).build()


def team_filter(filters: TeamFilter) -> EntityFilter:
    return _base_filter(filters).eq("line_id", filters.line_id).build()


def group_filter(filters: GroupFilter) -> EntityFilter:
    return _base_filter(filters).eq("team_id", filters.team_id).build()


factories = CrudModule(
    CrudModuleOptions(
        entity_name="Factory",
        path="/factories",
        model=Factory,
        create_schema=FactoryCreate,
        update_schema=FactoryUpdate,
        filter_schema=FactoryFilter,
        output_schema=FactoryOutput,
        build_filter=factory_filter,
        policy_factory=_policy(Level.FACTORY),
        required_roles=MANAGEMENT_ROLES,
        extra_routes=[hierarchy_routes(Level.FACTORY, LineOutput)],
    )
)

lines = CrudModule(
    CrudModuleOptions(
        entity_name="Line",
        path="/lines",
        model=Line,
        create_schema=LineCreate,
        update_schema=LineUpdate,
        filter_schema=LineFilter,
        output_schema=LineOutput,
        build_filter=line_filter,
        policy_factory=_policy(Level.LINE),
        required_roles=MANAGEMENT_ROLES,
        extra_routes=[hierarchy_routes(Level.LINE, TeamOutput)],
    )
)

teams = CrudModule(
    CrudModuleOptions(
        entity_name="Team",
        path="/teams",
        model=Team,
        create_schema=TeamCreate,
        update_schema=TeamUpdate,
        filter_schema=TeamFilter,
        output_schema=TeamOutput,
        build_filter=team_filter,
        policy_factory=_policy(Level.TEAM),
        required_roles=MANAGEMENT_ROLES,
        extra_routes=[hierarchy_routes(Level.TEAM, GroupOutput)],
    )
)

groups = CrudModule(
    CrudModuleOptions(
        entity_name="Group",
        path="/groups",
        model=Group,
        create_schema=GroupCreate,
        update_schema=GroupUpdate,
        filter_schema=GroupFilter,
        output_schema=GroupOutput,
        build_filter=group_filter,
        policy_factory=_policy(Level.GROUP),
        required_roles=MANAGEMENT_ROLES,
        extra_routes=[hierarchy_routes(Level.GROUP, None)],
    )
)

ORG_UNIT_MODULES = (factories, lines, teams, groups)
