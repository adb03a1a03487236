"""
Tests for the generic controller and the module assembler.
"""

from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from factory_api.core.errors import register_exception_handlers
from factory_api.models import Factory
from factory_api.routers.crud import CrudController, CrudModule, CrudModuleOptions, EndpointFlags
from factory_api.routers.org_units import factory_filter
from factory_api.services.crud import EntityFilter, Paging
from factory_shared.config.constants import Roles
from factory_shared.infrastructure.db import get_db
from factory_shared.security.auth import Requester
from factory_shared.utils.exceptions import AppException, EndpointDisabledError, NotFoundError
from factory_shared.utils.schemas import FactoryCreate, FactoryFilter, FactoryOutput, FactoryUpdate
from tests.conftest import headers_for

ADMIN = Requester(subject_id="admin-1", role_code=Roles.ADMIN)


@pytest.fixture
def service():
    service = MagicMock()
    service.entity_name = "Factory"
    return service


class TestDisabledEndpoints:
    """A disabled operation fails identically and never reaches the service."""

    @pytest.mark.parametrize("payload", [None, {}, FactoryCreate(code="F1", name="Plant One"), "garbage"])
    def test_disabled_create(self, service, payload):
        controller = CrudController(service, EndpointFlags(create=False), serialize=dict)

        with pytest.raises(EndpointDisabledError) as exc:
            controller.create(ADMIN, payload)

        assert exc.value.status_code == 404
        assert exc.value.message == "Endpoint not available"
        service.create_entity.assert_not_called()

    def test_every_operation_can_be_disabled(self, service):
        flags = EndpointFlags(create=False, list=False, get=False, update=False, delete=False)
        controller = CrudController(service, flags, serialize=dict)

        calls = [
            lambda: controller.create(ADMIN, None),
            lambda: controller.list(ADMIN, EntityFilter(), Paging.normalize()),
            lambda: controller.get_by_id("x"),
            lambda: controller.update(ADMIN, "x", None),
            lambda: controller.delete(ADMIN, "x"),
        ]
        for call in calls:
            with pytest.raises(EndpointDisabledError):
                call()
        assert service.mock_calls == []


class TestControllerNormalization:
    def test_untyped_service_error_becomes_400(self, service):
        service.create_entity.side_effect = KeyError("code")
        controller = CrudController(service, EndpointFlags(), serialize=dict)

        with pytest.raises(AppException) as exc:
            controller.create(ADMIN, FactoryCreate(code="F1", name="Plant One"))

        assert exc.value.status_code == 400
        assert exc.value.message.startswith("create Factory failed")

    def test_typed_error_unchanged(self, service):
        error = NotFoundError("Factory", "x")
        service.get_entity.side_effect = error
        controller = CrudController(service, EndpointFlags(), serialize=dict)

        with pytest.raises(NotFoundError) as exc:
            controller.get_by_id("x")
        assert exc.value is error

    def test_delete_returns_id(self, service):
        controller = CrudController(service, EndpointFlags(), serialize=dict)
        assert controller.delete(ADMIN, "abc") == {"success": True, "data": {"id": "abc"}}
        service.delete_entity.assert_called_once_with(ADMIN, "abc")


class TestModuleAssembler:
    @pytest.fixture
    def read_only(self):
        return CrudModule(
            CrudModuleOptions(
                entity_name="Factory",
                path="/archive/factories",
                model=Factory,
                create_schema=FactoryCreate,
                update_schema=FactoryUpdate,
                filter_schema=FactoryFilter,
                output_schema=FactoryOutput,
                build_filter=factory_filter,
                endpoints=EndpointFlags(create=False, update=False, delete=False),
            )
        )

    @pytest.fixture
    def module_client(self, read_only, db_session):
        app = FastAPI()
        register_exception_handlers(app)
        app.include_router(read_only.router)
        app.dependency_overrides[get_db] = lambda: db_session
        with TestClient(app) as client:
            yield client

    def test_disabled_routes_ignore_body_and_auth(self, module_client, seed_hierarchy):
        f1 = seed_hierarchy["F1"].id
        responses = [
            module_client.post("/archive/factories"),
            module_client.post("/archive/factories", json={"code": "x"}),
            module_client.post("/archive/factories", content=b"not json"),
            module_client.patch(f"/archive/factories/{f1}", json={"name": "Renamed Plant"}),
            module_client.delete(f"/archive/factories/{f1}"),
            module_client.delete("/archive/factories/no-such-id"),
        ]
        for response in responses:
            assert response.status_code == 404
            assert response.json() == {
                "success": False,
                "status_code": 404,
                "message": "Endpoint not available",
            }

    def test_enabled_routes_still_work(self, module_client, seed_admin, seed_hierarchy):
        response = module_client.get("/archive/factories", headers=headers_for(seed_admin))
        assert response.status_code == 200
        assert response.json()["total"] == 2

    def test_default_policy_allows_any_authenticated_read(self, module_client, seed_worker, seed_hierarchy):
        f2 = seed_hierarchy["F2"].id
        response = module_client.get(f"/archive/factories/{f2}", headers=headers_for(seed_worker))
        assert response.status_code == 200
        assert response.json()["data"]["code"] == "F2"

    def test_service_wiring(self, read_only, db_session):
        service = read_only.service(db_session, None)
        assert service.entity_name == "Factory"
        assert service.repo.model is Factory
