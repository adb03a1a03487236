"""
Repository pattern for database access.

Every entity store plugs into the CRUD framework through the CrudRepository
protocol. SqlAlchemyRepository is the one implementation; concrete modules
instantiate it with their model.

Usage:
    from factory_api.services.crud.repository import (
        FilterBuilder,
        Paging,
        SqlAlchemyRepository,
    )

    repo = SqlAlchemyRepository(Line, db)
    condition = FilterBuilder().eq("factory_id", factory_id).contains("name", "press").build()
    page = repo.list(condition, Paging.normalize(page=1, limit=500))
    page.paging.limit  # 100
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Protocol, Sequence, TypeVar

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from factory_api.models import Base, utcnow
from factory_shared.config.constants import (
    DEFAULT_SORT_FIELD,
    DEFAULT_SORT_ORDER,
    SORT_ORDERS,
    Limits,
)
from factory_shared.config.logging import get_logger
from factory_shared.infrastructure.db import safe_commit
from factory_shared.utils.exceptions import DatabaseError

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=Base)


# =============================================================================
# Paging
# =============================================================================


@dataclass(frozen=True)
class Paging:
    """Normalized paging request. Build it with Paging.normalize()."""

    page: int = Limits.DEFAULT_PAGE
    limit: int = Limits.DEFAULT_PAGE_SIZE
    sort: str = DEFAULT_SORT_FIELD
    order: str = DEFAULT_SORT_ORDER

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def normalize(
        cls,
        page: int | None = None,
        limit: int | None = None,
        sort: str | None = None,
        order: str | None = None,
    ) -> "Paging":
        """
        Clamp client input into a valid request.

        page < 1 becomes 1, a missing or non-positive limit becomes the
        default, limits above the maximum are capped, and any order other
        than asc/desc becomes desc.
        """
        page = page if page is not None and page >= 1 else Limits.DEFAULT_PAGE
        if limit is None or limit < 1:
            limit = Limits.DEFAULT_PAGE_SIZE
        limit = min(limit, Limits.MAX_PAGE_SIZE)
        order = (order or "").lower()
        if order not in SORT_ORDERS:
            order = DEFAULT_SORT_ORDER
        return cls(page=page, limit=limit, sort=sort or DEFAULT_SORT_FIELD, order=order)

    def to_dict(self) -> dict[str, Any]:
        return {"page": self.page, "limit": self.limit, "sort": self.sort, "order": self.order}


@dataclass
class Paginated(Generic[ModelT]):
    """One page of results. total counts every match, ignoring paging."""

    data: list[ModelT]
    paging: Paging
    total: int


# =============================================================================
# Typed filters
# =============================================================================


@dataclass(frozen=True)
class FilterClause:
    kind: str  # "eq", "contains" or "search"
    fields: tuple[str, ...]
    value: Any


@dataclass(frozen=True)
class EntityFilter:
    """Conjunction of clauses. An empty filter matches everything."""

    clauses: tuple[FilterClause, ...] = ()

    def apply(self, model: type[Base], query: Select) -> Select:
        for clause in self.clauses:
            columns = [getattr(model, name) for name in clause.fields]
            if clause.kind == "eq":
                query = query.where(columns[0] == clause.value)
            elif clause.kind == "contains":
                query = query.where(func.lower(columns[0]).contains(clause.value.lower(), autoescape=True))
            else:
                needle = clause.value.lower()
                query = query.where(or_(*(func.lower(c).contains(needle, autoescape=True) for c in columns)))
        return query


class FilterBuilder:
    """
    Builds an EntityFilter clause by clause.

    Clauses whose value is None are skipped, so optional query parameters
    can be passed straight through.
    """

    def __init__(self) -> None:
        self._clauses: list[FilterClause] = []

    def eq(self, field_name: str, value: Any) -> "FilterBuilder":
        if value is not None:
            self._clauses.append(FilterClause("eq", (field_name,), value))
        return self

    def contains(self, field_name: str, value: str | None) -> "FilterBuilder":
        """Case-insensitive substring match. % and _ match literally."""
        if value:
            self._clauses.append(FilterClause("contains", (field_name,), value))
        return self

    def search(self, value: str | None, fields: Sequence[str] = ("code", "name")) -> "FilterBuilder":
        """Case-insensitive substring match on any of the given fields."""
        if value:
            self._clauses.append(FilterClause("search", tuple(fields), value))
        return self

    def build(self) -> EntityFilter:
        return EntityFilter(tuple(self._clauses))


# =============================================================================
# Repository contract
# =============================================================================


class CrudRepository(Protocol[ModelT]):
    """Contract every entity store satisfies to plug into CrudService."""

    @property
    def model(self) -> type[ModelT]: ...

    def get(self, entity_id: str) -> ModelT | None: ...

    def find_by_cond(self, condition: EntityFilter) -> ModelT | None: ...

    def list(self, condition: EntityFilter, paging: Paging) -> Paginated[ModelT]: ...

    def insert(self, entity: ModelT) -> str: ...

    def update(self, entity_id: str, changes: dict[str, Any]) -> None: ...

    def delete(self, entity_id: str) -> None: ...


class SqlAlchemyRepository(Generic[ModelT]):
    """
    CrudRepository backed by a SQLAlchemy session.

    Each mutation commits its own unit of work. Store faults are logged and
    re-raised as DatabaseError; callers never see driver exceptions.
    """

    def __init__(self, model: type[ModelT], session: Session):
        self._model = model
        self._session = session

    @property
    def model(self) -> type[ModelT]:
        return self._model

    @property
    def session(self) -> Session:
        return self._session

    def _base_query(self) -> Select:
        return select(self._model)

    def _fail(self, operation: str, error: SQLAlchemyError) -> DatabaseError:
        self._session.rollback()
        logger.error(
            f"{self._model.__name__} {operation} failed",
            error=str(error),
            exc_info=(type(error), error, error.__traceback__),
        )
        return DatabaseError(f"{operation} {self._model.__name__.lower()}")

    def get(self, entity_id: str) -> ModelT | None:
        """Return the entity or None. Absence is not an error here."""
        try:
            return self._session.get(self._model, entity_id)
        except SQLAlchemyError as e:
            raise self._fail("get", e) from e

    def find_by_cond(self, condition: EntityFilter) -> ModelT | None:
        """
        First entity matching the condition, in store order.

        Nothing enforces uniqueness at this layer: when several rows match,
        which one is returned is not defined.
        """
        query = condition.apply(self._model, self._base_query()).limit(1)
        try:
            return self._session.scalar(query)
        except SQLAlchemyError as e:
            raise self._fail("find", e) from e

    def _sort_column(self, sort: str):
        # Unknown sort fields fall back to the default instead of failing
        column = getattr(self._model, sort, None)
        if column is None or not hasattr(column, "asc"):
            column = getattr(self._model, DEFAULT_SORT_FIELD)
        return column

    def list(self, condition: EntityFilter, paging: Paging) -> Paginated[ModelT]:
        query = condition.apply(self._model, self._base_query())
        count_query = select(func.count()).select_from(query.order_by(None).subquery())

        column = self._sort_column(paging.sort)
        ordering = column.asc() if paging.order == "asc" else column.desc()
        # Tie-break on id so pages are stable
        query = query.order_by(ordering, self._model.id).offset(paging.offset).limit(paging.limit)

        try:
            total = self._session.scalar(count_query) or 0
            data = list(self._session.scalars(query).all())
        except SQLAlchemyError as e:
            raise self._fail("list", e) from e
        return Paginated(data=data, paging=paging, total=total)

    def insert(self, entity: ModelT) -> str:
        """Persist an entity that already carries its id and timestamps."""
        self._session.add(entity)
        try:
            safe_commit(self._session)
        except SQLAlchemyError as e:
            raise self._fail("insert", e) from e
        return entity.id

    def update(self, entity_id: str, changes: dict[str, Any]) -> None:
        """
        Apply a partial update.

        None values are dropped: an explicit null cannot clear a field
        through this method.
        """
        entity = self.get(entity_id)
        if entity is None:
            return
        for field_name, value in changes.items():
            if value is not None and hasattr(entity, field_name):
                setattr(entity, field_name, value)
        entity.updated_at = utcnow()
        try:
            safe_commit(self._session)
        except SQLAlchemyError as e:
            raise self._fail("update", e) from e

    def delete(self, entity_id: str) -> None:
        """Hard delete."""
        entity = self.get(entity_id)
        if entity is None:
            return
        self._session.delete(entity)
        try:
            safe_commit(self._session)
        except SQLAlchemyError as e:
            raise self._fail("delete", e) from e
