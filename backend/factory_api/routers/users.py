"""
Endpoints about the calling user.
"""

from typing import Any

from fastapi import APIRouter, Depends

from factory_api.routers.hierarchy import get_resolver
from factory_api.services.hierarchy import HierarchyResolver, Level
from factory_shared.security.auth import Requester, current_requester
from factory_shared.utils.schemas import ManagerialAccessOutput

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me/managerial-access")
def my_managerial_access(
    requester: Requester = Depends(current_requester),
    resolver: HierarchyResolver = Depends(get_resolver),
) -> dict[str, Any]:
    """Every factory, line, team and group the caller can manage."""
    if requester.is_global_admin:
        access = {
            "factories": sorted(resolver.facet(Level.FACTORY).all_ids()),
            "lines": sorted(resolver.facet(Level.LINE).all_ids()),
            "teams": sorted(resolver.facet(Level.TEAM).all_ids()),
            "groups": sorted(resolver.facet(Level.GROUP).all_ids()),
        }
    else:
        access = resolver.get_managerial_access(requester.subject_id)
    return {"success": True, "data": ManagerialAccessOutput(**access).model_dump()}
