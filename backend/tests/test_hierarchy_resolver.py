"""
Tests for the hierarchy resolver: inherited management and accessible sets.
"""

from datetime import timedelta

import pytest

from factory_api.models import (
    FactoryManager,
    GroupLeader,
    LineManager,
    TeamLeader,
    UserRoleAssignment,
    utcnow,
)
from factory_api.services.hierarchy import HierarchyResolver, Level, RoleLookup
from factory_shared.config.constants import Roles
from tests.conftest import assign


@pytest.fixture
def resolver(db_session):
    return HierarchyResolver(db_session)


class TestInheritedManagement:
    """A manager of a node manages everything below it."""

    def test_line_manager_manages_teams_and_groups_below(self, resolver, seed_hierarchy, line_manager):
        h = seed_hierarchy
        assert resolver.can_manage(line_manager.id, h["L1"].id, Level.LINE)
        assert resolver.can_manage(line_manager.id, h["T1"].id, Level.TEAM)
        assert resolver.can_manage(line_manager.id, h["G1"].id, Level.GROUP)

    def test_line_manager_does_not_manage_siblings_or_ancestors(self, resolver, seed_hierarchy, line_manager):
        h = seed_hierarchy
        assert not resolver.can_manage(line_manager.id, h["L2"].id, Level.LINE)
        assert not resolver.can_manage(line_manager.id, h["T2"].id, Level.TEAM)
        assert not resolver.can_manage(line_manager.id, h["F1"].id, Level.FACTORY)

    def test_factory_manager_reaches_every_level(self, resolver, seed_hierarchy, factory_manager):
        h = seed_hierarchy
        for key, level in (("L2", Level.LINE), ("T2", Level.TEAM), ("G1", Level.GROUP)):
            assert resolver.can_manage(factory_manager.id, h[key].id, level)
        assert not resolver.can_manage(factory_manager.id, h["F2"].id, Level.FACTORY)

    def test_group_leader_manages_only_the_group(self, db_session, resolver, seed_hierarchy, seed_managers):
        h = seed_hierarchy
        leader = seed_managers[1]
        assign(db_session, GroupLeader, h["G1"].id, leader.id)

        assert resolver.can_manage(leader.id, h["G1"].id, Level.GROUP)
        assert not resolver.can_manage(leader.id, h["T1"].id, Level.TEAM)

    def test_ended_assignment_grants_nothing(self, db_session, resolver, seed_hierarchy, seed_managers):
        h = seed_hierarchy
        user = seed_managers[1]
        assign(db_session, LineManager, h["L1"].id, user.id, end_date=utcnow() - timedelta(days=1))

        assert not resolver.can_manage(user.id, h["T1"].id, Level.TEAM)
        assert resolver.accessible_entities(user.id, Level.TEAM) == []

    def test_future_end_date_is_still_active(self, db_session, resolver, seed_hierarchy, seed_managers):
        h = seed_hierarchy
        user = seed_managers[1]
        assign(db_session, TeamLeader, h["T2"].id, user.id, end_date=utcnow() + timedelta(days=30))

        assert resolver.can_manage(user.id, h["T2"].id, Level.TEAM)

    def test_unknown_entity_is_not_managed(self, resolver, seed_hierarchy, line_manager):
        assert not resolver.can_manage(line_manager.id, "no-such-team", Level.TEAM)


class TestGlobalAdmins:
    def test_admin_base_role_manages_everything(self, resolver, seed_hierarchy, seed_admin):
        h = seed_hierarchy
        assert resolver.can_manage(seed_admin.id, h["G1"].id, Level.GROUP)
        assert resolver.can_manage(seed_admin.id, "no-such-team", Level.TEAM)
        assert resolver.accessible_entities(seed_admin.id, Level.LINE) == sorted(
            [h["L1"].id, h["L2"].id]
        )

    def test_admin_role_assignment_counts_until_it_expires(self, db_session, resolver, seed_hierarchy, seed_worker):
        grant = UserRoleAssignment(user_id=seed_worker.id, role_code=Roles.SUPER_ADMIN)
        db_session.add(grant)
        db_session.commit()
        assert resolver.can_manage(seed_worker.id, seed_hierarchy["F2"].id, Level.FACTORY)

        grant.expiry_date = utcnow() - timedelta(minutes=1)
        db_session.commit()
        assert not resolver.can_manage(seed_worker.id, seed_hierarchy["F2"].id, Level.FACTORY)


class TestScopedRoles:
    def test_scoped_role_acts_as_direct_assignment(self, db_session, resolver, seed_hierarchy, seed_worker):
        h = seed_hierarchy
        db_session.add(
            UserRoleAssignment(
                user_id=seed_worker.id,
                role_code=Roles.LINE_MANAGER,
                scope=Level.LINE.scope_key(h["L2"].id),
            )
        )
        db_session.commit()

        assert resolver.can_manage(seed_worker.id, h["T2"].id, Level.TEAM)
        assert resolver.accessible_entities(seed_worker.id, Level.TEAM) == [h["T2"].id]

    def test_scoped_role_for_wrong_level_is_ignored(self, db_session, resolver, seed_hierarchy, seed_worker):
        h = seed_hierarchy
        db_session.add(
            UserRoleAssignment(
                user_id=seed_worker.id,
                role_code=Roles.TEAM_LEADER,
                scope=Level.LINE.scope_key(h["L1"].id),
            )
        )
        db_session.commit()

        assert not resolver.can_manage(seed_worker.id, h["L1"].id, Level.LINE)

    def test_get_user_roles_includes_expired(self, db_session, seed_worker):
        db_session.add_all([
            UserRoleAssignment(user_id=seed_worker.id, role_code=Roles.GROUP_LEADER, scope="group:g-1"),
            UserRoleAssignment(
                user_id=seed_worker.id,
                role_code=Roles.ADMIN,
                expiry_date=utcnow() - timedelta(days=1),
            ),
        ])
        db_session.commit()

        grants = RoleLookup(db_session).get_user_roles(seed_worker.id)
        assert {g.role for g in grants} == {Roles.GROUP_LEADER, Roles.ADMIN}
        expired = next(g for g in grants if g.role == Roles.ADMIN)
        assert not expired.is_active_at(utcnow())


class TestAccessibleEntities:
    def test_line_manager_scenario(self, resolver, seed_hierarchy, line_manager):
        """Primary manager of L1 can manage T1 and sees it as accessible."""
        h = seed_hierarchy
        assert resolver.can_manage(line_manager.id, h["T1"].id, Level.TEAM)
        assert h["T1"].id in resolver.accessible_entities(line_manager.id, Level.TEAM)

    def test_accessible_sets_per_level(self, resolver, seed_hierarchy, line_manager):
        h = seed_hierarchy
        assert resolver.accessible_entities(line_manager.id, Level.FACTORY) == []
        assert resolver.accessible_entities(line_manager.id, Level.LINE) == [h["L1"].id]
        assert resolver.accessible_entities(line_manager.id, Level.TEAM) == [h["T1"].id]
        assert resolver.accessible_entities(line_manager.id, Level.GROUP) == [h["G1"].id]

    def test_direct_and_inherited_access_merge(self, db_session, resolver, seed_hierarchy, line_manager):
        h = seed_hierarchy
        assign(db_session, TeamLeader, h["T2"].id, line_manager.id)

        assert resolver.accessible_entities(line_manager.id, Level.TEAM) == sorted([h["T1"].id, h["T2"].id])

    def test_accessible_matches_can_manage(self, db_session, resolver, seed_hierarchy, seed_managers):
        h = seed_hierarchy
        assign(db_session, FactoryManager, h["F2"].id, seed_managers[0].id)
        assign(db_session, LineManager, h["L2"].id, seed_managers[0].id)
        assign(db_session, GroupLeader, h["G1"].id, seed_managers[1].id)

        for user in seed_managers:
            for level in Level:
                accessible = set(resolver.accessible_entities(user.id, level))
                managed = {
                    entity_id
                    for entity_id in resolver.facet(level).all_ids()
                    if resolver.can_manage(user.id, entity_id, level)
                }
                assert accessible == managed, (user.id, level)

    def test_managerial_access_keys(self, resolver, seed_hierarchy, line_manager):
        access = resolver.get_managerial_access(line_manager.id)
        assert set(access) == {"factories", "lines", "teams", "groups"}
        assert access["groups"] == [seed_hierarchy["G1"].id]

    def test_removed_manager_loses_inherited_rights(self, resolver, seed_hierarchy, line_manager):
        h = seed_hierarchy
        resolver.facet(Level.LINE).remove_manager(h["L1"].id, line_manager.id)

        assert not resolver.can_manage(line_manager.id, h["T1"].id, Level.TEAM)
        assert resolver.accessible_entities(line_manager.id, Level.TEAM) == []
