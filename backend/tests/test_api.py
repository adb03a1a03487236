"""
End-to-end tests for the hierarchy endpoints.
"""

from factory_api.models import TeamLeader
from factory_shared.infrastructure.events import ALL_EVENTS, ENTITY_CREATED, MANAGER_ASSIGNED
from factory_shared.security.auth import sign_jwt
from tests.conftest import assign, headers_for


class TestAuthentication:
    def test_missing_token(self, client, seed_hierarchy):
        response = client.get("/lines")
        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["status_code"] == 401

    def test_malformed_header(self, client):
        response = client.get("/lines", headers={"Authorization": "Token abc"})
        assert response.status_code == 401

    def test_invalid_token(self, client):
        response = client.get("/lines", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid token"

    def test_worker_cannot_write(self, client, worker_headers, seed_hierarchy):
        response = client.post(
            "/teams",
            headers=worker_headers,
            json={"code": "T7", "name": "New Crew", "line_id": seed_hierarchy["L1"].id},
        )
        assert response.status_code == 403

    def test_worker_can_read(self, client, worker_headers, seed_hierarchy):
        response = client.get(f"/teams/{seed_hierarchy['T1'].id}", headers=worker_headers)
        assert response.status_code == 200

    def test_scope_claims_do_not_grant_management(self, client, seed_hierarchy, line_manager):
        l2 = seed_hierarchy["L2"].id
        token = sign_jwt({"sub": line_manager.id, "role": line_manager.role_code, "scopes": [f"line:{l2}"]})

        response = client.patch(
            f"/lines/{l2}", headers={"Authorization": f"Bearer {token}"}, json={"name": "Relabel"}
        )

        assert response.status_code == 403


class TestOrgUnitEndpoints:
    def test_create_factory(self, client, admin_headers, event_bus):
        received = []
        event_bus.subscribe(ENTITY_CREATED, received.append)

        response = client.post(
            "/factories",
            headers=admin_headers,
            json={"code": "F3", "name": "East Plant", "address": "9 Dock St"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["code"] == "F3"
        assert body["data"]["address"] == "9 Dock St"
        assert received[0].payload == {"entity": "Factory", "id": body["data"]["id"]}

    def test_client_cannot_choose_id(self, client, admin_headers):
        response = client.post(
            "/factories",
            headers=admin_headers,
            json={"id": "mine", "code": "F3", "name": "East Plant"},
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "id"

    def test_validation_envelope(self, client, admin_headers):
        response = client.post("/factories", headers=admin_headers, json={"code": "x", "name": "East Plant"})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Validation failed"
        assert [e["field"] for e in body["errors"]] == ["code"]

    def test_factory_manager_creates_line(self, client, seed_hierarchy, factory_manager):
        response = client.post(
            "/lines",
            headers=headers_for(factory_manager),
            json={"code": "L3", "name": "Finishing", "capacity": 10, "factory_id": seed_hierarchy["F1"].id},
        )
        assert response.status_code == 201
        assert response.json()["data"]["factory_id"] == seed_hierarchy["F1"].id

    def test_line_manager_cannot_create_sibling_line(self, client, seed_hierarchy, line_manager):
        response = client.post(
            "/lines",
            headers=headers_for(line_manager),
            json={"code": "L3", "name": "Finishing", "factory_id": seed_hierarchy["F1"].id},
        )
        assert response.status_code == 403

    def test_missing_parent(self, client, admin_headers, seed_hierarchy):
        response = client.post(
            "/teams",
            headers=admin_headers,
            json={"code": "T7", "name": "New Crew", "line_id": "no-such-line"},
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Line with ID no-such-line not found"

    def test_duplicate_code(self, client, admin_headers, seed_hierarchy):
        response = client.post(
            "/lines",
            headers=admin_headers,
            json={"code": "L1", "name": "Another", "factory_id": seed_hierarchy["F2"].id},
        )
        assert response.status_code == 400
        assert response.json()["errors"] == [
            {"field": "code", "message": "Line with code 'L1' already exists"}
        ]

    def test_get_unknown(self, client, admin_headers):
        response = client.get("/groups/no-such-group", headers=admin_headers)
        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "status_code": 404,
            "message": "Group with ID no-such-group not found",
        }

    def test_list_clamps_limit(self, client, admin_headers, seed_hierarchy):
        response = client.get("/lines?page=1&limit=500", headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["paging"]["limit"] == 100
        assert body["paging"]["page"] == 1
        assert body["total"] == 2
        assert len(body["data"]) == 2

    def test_list_lenient_paging(self, client, admin_headers, seed_hierarchy):
        response = client.get("/lines?page=abc&limit=-3&order=sideways", headers=admin_headers)

        assert response.status_code == 200
        paging = response.json()["paging"]
        assert paging["page"] == 1
        assert paging["limit"] == 10
        assert paging["order"] == "desc"
        assert paging["has_next"] is False

    def test_list_filters(self, client, admin_headers, seed_hierarchy):
        l2 = seed_hierarchy["L2"].id
        response = client.get(f"/teams?line_id={l2}", headers=admin_headers)
        assert [t["code"] for t in response.json()["data"]] == ["T2"]

        response = client.get("/teams?search=morning", headers=admin_headers)
        assert [t["code"] for t in response.json()["data"]] == ["T1"]

    def test_paging_metadata(self, client, admin_headers, seed_hierarchy):
        response = client.get("/factories?limit=1&sort=code&order=asc", headers=admin_headers)
        body = response.json()
        assert [f["code"] for f in body["data"]] == ["F1"]
        assert body["paging"]["pages"] == 2
        assert body["paging"]["has_next"] is True
        assert body["paging"]["has_prev"] is False

    def test_update_within_scope(self, client, seed_hierarchy, line_manager):
        t1 = seed_hierarchy["T1"].id
        response = client.patch(f"/teams/{t1}", headers=headers_for(line_manager), json={"name": "Dawn Crew"})

        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Dawn Crew"

    def test_update_outside_scope(self, client, seed_hierarchy, line_manager):
        t2 = seed_hierarchy["T2"].id
        response = client.patch(f"/teams/{t2}", headers=headers_for(line_manager), json={"name": "Dusk Crew"})
        assert response.status_code == 403

    def test_delete_team_with_groups(self, client, admin_headers, seed_hierarchy):
        t1 = seed_hierarchy["T1"].id

        response = client.delete(f"/teams/{t1}", headers=admin_headers)

        assert response.status_code == 400
        assert client.get(f"/teams/{t1}", headers=admin_headers).status_code == 200

    def test_delete_group(self, client, seed_hierarchy, line_manager):
        g1 = seed_hierarchy["G1"].id
        headers = headers_for(line_manager)

        response = client.delete(f"/groups/{g1}", headers=headers)

        assert response.status_code == 200
        assert response.json() == {"success": True, "data": {"id": g1}}
        assert client.get(f"/groups/{g1}", headers=headers).status_code == 404


class TestManagerEndpoints:
    def test_list_managers(self, client, admin_headers, seed_hierarchy, line_manager):
        response = client.get(f"/lines/{seed_hierarchy['L1'].id}/managers", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data) == 1
        assert data[0]["user_id"] == line_manager.id
        assert data[0]["is_primary"] is True
        assert data[0]["end_date"] is None

    def test_assign_new_primary(self, client, event_bus, seed_hierarchy, seed_managers, line_manager):
        l1 = seed_hierarchy["L1"].id
        headers = headers_for(line_manager)
        received = []
        event_bus.subscribe(ALL_EVENTS, received.append)

        response = client.post(
            f"/lines/{l1}/managers",
            headers=headers,
            json={"user_id": seed_managers[1].id, "is_primary": True},
        )

        assert response.status_code == 201
        assert response.json()["data"]["is_primary"] is True
        managers = client.get(f"/lines/{l1}/managers", headers=headers).json()["data"]
        assert [(m["user_id"], m["is_primary"]) for m in managers] == [
            (seed_managers[1].id, True),
            (line_manager.id, False),
        ]
        assert [e.name for e in received] == [MANAGER_ASSIGNED]

    def test_assign_twice(self, client, admin_headers, seed_hierarchy, line_manager):
        response = client.post(
            f"/lines/{seed_hierarchy['L1'].id}/managers",
            headers=admin_headers,
            json={"user_id": line_manager.id},
        )
        assert response.status_code == 400

    def test_assign_unknown_user(self, client, admin_headers, seed_hierarchy):
        response = client.post(
            f"/teams/{seed_hierarchy['T1'].id}/managers",
            headers=admin_headers,
            json={"user_id": "ghost"},
        )
        assert response.status_code == 404

    def test_assign_forbidden(self, client, seed_hierarchy, seed_managers, line_manager):
        response = client.post(
            f"/lines/{seed_hierarchy['L2'].id}/managers",
            headers=headers_for(line_manager),
            json={"user_id": seed_managers[1].id},
        )
        assert response.status_code == 403

    def test_update_manager(self, client, admin_headers, seed_hierarchy, line_manager):
        response = client.patch(
            f"/lines/{seed_hierarchy['L1'].id}/managers/{line_manager.id}",
            headers=admin_headers,
            json={"is_primary": False},
        )
        assert response.status_code == 200
        assert response.json()["data"]["is_primary"] is False

    def test_null_end_date_keeps_stored_one(self, client, admin_headers, seed_hierarchy, line_manager):
        url = f"/lines/{seed_hierarchy['L1'].id}/managers/{line_manager.id}"
        first = client.patch(url, headers=admin_headers, json={"is_primary": True, "end_date": "2999-01-01T00:00:00Z"})
        assert first.status_code == 200
        ended = first.json()["data"]["end_date"]
        assert ended is not None

        second = client.patch(url, headers=admin_headers, json={"is_primary": True, "end_date": None})

        assert second.status_code == 200
        assert second.json()["data"]["end_date"] == ended

    def test_remove_then_can_manage(self, client, admin_headers, seed_hierarchy, line_manager):
        l1 = seed_hierarchy["L1"].id
        t1 = seed_hierarchy["T1"].id
        headers = headers_for(line_manager)
        assert client.get(f"/teams/{t1}/can-manage", headers=headers).json()["data"]["can_manage"] is True

        response = client.delete(f"/lines/{l1}/managers/{line_manager.id}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["end_date"] is not None

        after = client.get(f"/teams/{t1}/can-manage", headers=headers).json()["data"]
        assert after == {"entity_id": t1, "level": "team", "can_manage": False}

        history = client.get(f"/lines/{l1}/managers/history", headers=admin_headers).json()["data"]
        assert [h["user_id"] for h in history] == [line_manager.id]

    def test_remove_unknown_assignment(self, client, admin_headers, seed_hierarchy, seed_managers):
        response = client.delete(
            f"/lines/{seed_hierarchy['L1'].id}/managers/{seed_managers[1].id}",
            headers=admin_headers,
        )
        assert response.status_code == 404

    def test_can_manage_unknown_entity(self, client, admin_headers):
        response = client.get("/teams/no-such-team/can-manage", headers=admin_headers)
        assert response.status_code == 404

    def test_invalid_assignment_window(self, client, admin_headers, seed_hierarchy, seed_managers):
        response = client.post(
            f"/lines/{seed_hierarchy['L1'].id}/managers",
            headers=admin_headers,
            json={
                "user_id": seed_managers[1].id,
                "start_date": "2030-01-02T00:00:00Z",
                "end_date": "2030-01-01T00:00:00Z",
            },
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Validation failed"


class TestHierarchyQueries:
    def test_accessible(self, client, seed_hierarchy, line_manager):
        response = client.get("/teams/accessible", headers=headers_for(line_manager))
        assert response.status_code == 200
        assert response.json()["data"] == [seed_hierarchy["T1"].id]

    def test_accessible_for_admin(self, client, admin_headers, seed_hierarchy):
        response = client.get("/factories/accessible", headers=admin_headers)
        assert response.json()["data"] == sorted([seed_hierarchy["F1"].id, seed_hierarchy["F2"].id])

    def test_children(self, client, worker_headers, seed_hierarchy):
        response = client.get(f"/factories/{seed_hierarchy['F1'].id}/children", headers=worker_headers)
        assert sorted(c["code"] for c in response.json()["data"]) == ["L1", "L2"]

        response = client.get(f"/groups/{seed_hierarchy['G1'].id}/children", headers=worker_headers)
        assert response.json()["data"] == []

    def test_managerial_access(self, client, db_session, seed_hierarchy, line_manager):
        h = seed_hierarchy
        assign(db_session, TeamLeader, h["T2"].id, line_manager.id)

        response = client.get("/users/me/managerial-access", headers=headers_for(line_manager))

        assert response.status_code == 200
        assert response.json()["data"] == {
            "factories": [],
            "lines": [h["L1"].id],
            "teams": sorted([h["T1"].id, h["T2"].id]),
            "groups": [h["G1"].id],
        }


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_correlation_id_is_echoed(client, admin_headers):
    response = client.get("/factories", headers={**admin_headers, "X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_unusable_request_id_is_replaced(client, admin_headers):
    response = client.get("/factories", headers={**admin_headers, "X-Request-ID": "not a usable id"})
    assert response.headers["X-Request-ID"] != "not a usable id"
    assert len(response.headers["X-Request-ID"]) == 36
