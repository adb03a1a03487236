"""
List parameters shared by every collection endpoint.

page and limit arrive as raw strings and are coerced leniently: anything
that is not an integer falls back to the default. Clamping happens in
Paging.normalize().

Usage:
    from factory_api.routers._common.pagination import get_paging

    @router.get("/lines")
    def list_lines(paging: Paging = Depends(get_paging)):
        ...
"""

from typing import Any

from fastapi import Query

from factory_api.services.crud.repository import Paginated, Paging


def _to_int(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def get_paging(
    page: str | None = Query(default=None, description="Page number, 1-indexed"),
    limit: str | None = Query(default=None, description="Items per page (1-100)"),
    sort: str | None = Query(default=None, description="Field to sort by"),
    order: str | None = Query(default=None, description="asc or desc"),
) -> Paging:
    """FastAPI dependency turning query parameters into a Paging."""
    return Paging.normalize(page=_to_int(page), limit=_to_int(limit), sort=sort, order=order)


def paging_meta(paging: Paging, total: int) -> dict[str, Any]:
    """Paging block of a list response."""
    meta = paging.to_dict()
    meta["pages"] = (total + paging.limit - 1) // paging.limit
    meta["has_next"] = paging.offset + paging.limit < total
    meta["has_prev"] = paging.page > 1
    return meta


def paginated_envelope(result: Paginated, data: list[Any]) -> dict[str, Any]:
    """
    Success envelope for a list call.

    data is the already-serialized page; result supplies paging and total.
    """
    return {
        "success": True,
        "data": data,
        "paging": paging_meta(result.paging, result.total),
        "total": result.total,
    }
