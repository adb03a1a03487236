"""
Generic CRUD framework: repository contract, policy hooks and service.

Usage:
    from factory_api.services.crud import CrudService, SqlAlchemyRepository, FilterBuilder
"""

from .repository import (
    CrudRepository,
    EntityFilter,
    FilterBuilder,
    FilterClause,
    Paginated,
    Paging,
    SqlAlchemyRepository,
)
from .policy import Action, CrudPolicy, DefaultPolicy
from .service import CrudService

__all__ = [
    "CrudRepository",
    "EntityFilter",
    "FilterBuilder",
    "FilterClause",
    "Paginated",
    "Paging",
    "SqlAlchemyRepository",
    "Action",
    "CrudPolicy",
    "DefaultPolicy",
    "CrudService",
]
