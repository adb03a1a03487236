"""
Hierarchy repository facet: one per level.

A facet answers structural questions about one level (children, parent,
who manages what) and owns every write to that level's assignment table.

Primary invariant: at most one active assignment per scope has
is_primary=True. Every write that can set a primary demotes the other
active rows of the scope in the same transaction, while holding the
scope's lock and a row lock on the scope entity.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import exists, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from factory_api.models import ManagerAssignmentMixin, User, utcnow
from factory_api.services.hierarchy.levels import Level, LevelSpec
from factory_api.services.hierarchy.locks import ScopeLockManager, scope_locks
from factory_api.services.hierarchy.roles import RoleLookup
from factory_shared.config.logging import get_logger
from factory_shared.infrastructure.db import safe_commit
from factory_shared.utils.exceptions import ConflictError, DatabaseError, NotFoundError
from factory_shared.utils.schemas import ManagerAssignmentCreate

logger = get_logger(__name__)


class HierarchyFacet:
    def __init__(
        self,
        level: Level,
        session: Session,
        roles: RoleLookup | None = None,
        locks: ScopeLockManager | None = None,
    ):
        self._level = level
        self._spec: LevelSpec = level.spec
        self._session = session
        self._roles = roles or RoleLookup(session)
        self._locks = locks or scope_locks

    @property
    def level(self) -> Level:
        return self._level

    @property
    def _entity(self):
        return self._spec.entity

    @property
    def _assignment(self) -> type[ManagerAssignmentMixin]:
        return self._spec.assignment

    def _active(self, now: datetime):
        """SQL condition for assignments active at `now`."""
        model = self._assignment
        return or_(model.end_date.is_(None), model.end_date > now)

    # =========================================================================
    # Structure
    # =========================================================================

    def exists(self, entity_id: str) -> bool:
        return bool(self._session.scalar(select(exists().where(self._entity.id == entity_id))))

    def all_ids(self) -> list[str]:
        return list(self._session.scalars(select(self._entity.id)).all())

    def list_children(self, parent_id: str | None) -> list[Any]:
        """
        Entities at this level whose parent is parent_id.

        The root level has no parent; every factory is returned.
        """
        query = select(self._entity)
        if self._spec.parent_field is not None:
            query = query.where(getattr(self._entity, self._spec.parent_field) == parent_id)
        return list(self._session.scalars(query.order_by(self._entity.created_at)).all())

    def child_ids(self, parent_ids: set[str]) -> set[str]:
        """Ids at this level under any of parent_ids."""
        if not parent_ids or self._spec.parent_field is None:
            return set()
        column = getattr(self._entity, self._spec.parent_field)
        return set(self._session.scalars(select(self._entity.id).where(column.in_(parent_ids))).all())

    def parent_id(self, entity_id: str) -> str | None:
        if self._spec.parent_field is None:
            return None
        column = getattr(self._entity, self._spec.parent_field)
        return self._session.scalar(select(column).where(self._entity.id == entity_id))

    def has_children(self, entity_id: str) -> bool:
        child = self._level.child
        if child is None:
            return False
        spec = child.spec
        column = getattr(spec.entity, spec.parent_field)
        return bool(self._session.scalar(select(exists().where(column == entity_id))))

    # =========================================================================
    # Management queries
    # =========================================================================

    def is_manager(self, user_id: str, entity_id: str, now: datetime | None = None) -> bool:
        """
        Direct management of this exact entity.

        True for a global admin, an active assignment at the entity, or an
        active scoped role for it (e.g. LINE_MANAGER on "line:<id>").
        Ancestors are not consulted here.
        """
        now = now or utcnow()
        if self._roles.is_global_admin(user_id, now):
            return True

        model = self._assignment
        direct = select(
            exists().where(
                model.scope_id == entity_id,
                model.user_id == user_id,
                self._active(now),
            )
        )
        if self._session.scalar(direct):
            return True

        return self._roles.has_scoped_role(
            user_id, self._spec.manager_role, self._level.scope_key(entity_id), now
        )

    def direct_scope_ids(self, user_id: str, now: datetime | None = None) -> set[str]:
        """Entities at this level the user manages directly."""
        now = now or utcnow()
        model = self._assignment
        ids = set(
            self._session.scalars(
                select(model.scope_id).where(model.user_id == user_id, self._active(now))
            ).all()
        )
        ids |= self._roles.scoped_ids(user_id, self._spec.manager_role, self._level.value, now)
        if not ids:
            return ids
        # Assignments and scoped roles may outlive the entity they name
        return set(
            self._session.scalars(select(self._entity.id).where(self._entity.id.in_(ids))).all()
        )

    def get_managers(self, entity_id: str, now: datetime | None = None) -> list[ManagerAssignmentMixin]:
        """Active assignments, primary first, then most recent start."""
        now = now or utcnow()
        model = self._assignment
        query = (
            select(model)
            .where(model.scope_id == entity_id, self._active(now))
            .order_by(model.is_primary.desc(), model.start_date.desc())
        )
        return list(self._session.scalars(query).all())

    def get_history(self, entity_id: str) -> list[ManagerAssignmentMixin]:
        """Every assignment ever made for the entity, ended ones included."""
        model = self._assignment
        query = select(model).where(model.scope_id == entity_id).order_by(model.start_date.desc())
        return list(self._session.scalars(query).all())

    # =========================================================================
    # Management writes
    # =========================================================================

    @contextmanager
    def _scope_transaction(self, entity_id: str, operation: str) -> Iterator[datetime]:
        """
        Serialize writes on one scope and commit them as one unit.

        Yields the timestamp the write should treat as "now".
        """
        with self._locks.hold(self._level, entity_id):
            try:
                locked = self._session.scalar(
                    select(self._entity.id).where(self._entity.id == entity_id).with_for_update()
                )
                if locked is None:
                    raise NotFoundError(self._spec.label, entity_id)
                yield utcnow()
                safe_commit(self._session)
            except SQLAlchemyError as e:
                self._session.rollback()
                logger.error(
                    f"{self._spec.label} manager {operation} failed",
                    entity_id=entity_id,
                    error=str(e),
                    exc_info=(type(e), e, e.__traceback__),
                )
                raise DatabaseError(f"{operation} {self._level.value} manager") from e
            except Exception:
                self._session.rollback()
                raise

    def _demote_others(self, entity_id: str, keep_id: str | None, now: datetime) -> int:
        model = self._assignment
        stmt = (
            update(model)
            .where(
                model.scope_id == entity_id,
                model.is_primary.is_(True),
                self._active(now),
            )
            .values(is_primary=False, updated_at=now)
            .execution_options(synchronize_session="fetch")
        )
        if keep_id is not None:
            stmt = stmt.where(model.id != keep_id)
        return self._session.execute(stmt).rowcount or 0

    @staticmethod
    def _open_at(end_date: datetime | None, now: datetime) -> bool:
        return end_date is None or end_date > now

    def _find_active(self, entity_id: str, user_id: str, now: datetime) -> ManagerAssignmentMixin | None:
        model = self._assignment
        query = (
            select(model)
            .where(model.scope_id == entity_id, model.user_id == user_id, self._active(now))
            .order_by(model.start_date.desc())
            .limit(1)
        )
        return self._session.scalar(query)

    def add_manager(self, entity_id: str, data: ManagerAssignmentCreate) -> ManagerAssignmentMixin:
        """
        Assign a user to the entity.

        Raises:
            NotFoundError: If the entity or the user does not exist.
            ConflictError: If the user already holds an active assignment here.
        """
        with self._scope_transaction(entity_id, "add") as now:
            if self._session.get(User, data.user_id) is None:
                raise NotFoundError("User", data.user_id)
            if self._find_active(entity_id, data.user_id, now) is not None:
                raise ConflictError(
                    f"User {data.user_id} already manages {self._spec.label} {entity_id}",
                    entity_id=entity_id,
                    user_id=data.user_id,
                )

            # An already-ended primary is history and leaves the current primary alone
            demoted = 0
            if data.is_primary and self._open_at(data.end_date, now):
                demoted = self._demote_others(entity_id, None, now)
            assignment = self._assignment(
                scope_id=entity_id,
                user_id=data.user_id,
                is_primary=data.is_primary,
                start_date=data.start_date or now,
                end_date=data.end_date,
                created_at=now,
                updated_at=now,
            )
            self._session.add(assignment)

        logger.info(
            f"{self._spec.label} manager added",
            entity_id=entity_id,
            user_id=data.user_id,
            is_primary=data.is_primary,
            demoted=demoted,
        )
        return assignment

    def update_manager(
        self,
        entity_id: str,
        user_id: str,
        is_primary: bool,
        end_date: datetime | None = None,
    ) -> ManagerAssignmentMixin:
        """
        Change the primary flag and optionally the end date of the user's
        active assignment. end_date=None leaves the end date untouched.

        Raises:
            NotFoundError: If the user has no active assignment here.
        """
        with self._scope_transaction(entity_id, "update") as now:
            assignment = self._find_active(entity_id, user_id, now)
            if assignment is None:
                raise NotFoundError(f"Active {self._level.value} manager assignment", user_id)

            if end_date is not None:
                assignment.end_date = end_date
            if is_primary and self._open_at(assignment.end_date, now):
                self._demote_others(entity_id, assignment.id, now)
            assignment.is_primary = is_primary
            assignment.updated_at = now

        logger.info(
            f"{self._spec.label} manager updated",
            entity_id=entity_id,
            user_id=user_id,
            is_primary=is_primary,
        )
        return assignment

    def remove_manager(self, entity_id: str, user_id: str) -> ManagerAssignmentMixin:
        """
        End the user's active assignment now. The row is kept as history.

        Raises:
            NotFoundError: If the user has no active assignment here.
        """
        with self._scope_transaction(entity_id, "remove") as now:
            assignment = self._find_active(entity_id, user_id, now)
            if assignment is None:
                raise NotFoundError(f"Active {self._level.value} manager assignment", user_id)
            assignment.end_date = now
            assignment.updated_at = now

        logger.info(f"{self._spec.label} manager removed", entity_id=entity_id, user_id=user_id)
        return assignment
