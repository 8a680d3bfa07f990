"""
Soft-delete mediator.

Sits between service code and a SQLAlchemy session. Deletes of
soft-deletable models become updates, reads hide soft-deleted records
unless ``include_deleted=True`` is passed, and relation expansions hide
soft-deleted neighbours at every depth. Everything else reaches the
session unchanged, and store errors propagate as raised.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Type

from sqlalchemy import delete as sa_delete
from sqlalchemy import func, inspect, select
from sqlalchemy import update as sa_update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, load_only, with_parent

from .exceptions import InvalidExpansionError, InvalidQueryError, RecordNotFoundError
from .expansion import Expansion, build_loader_options
from .filters import (
    OrderBy,
    Where,
    build_criteria,
    build_order_by,
    check_deletion_markers,
    check_include_deleted,
    check_patch,
    column_for,
    scoped_criteria,
    with_live_filter,
)
from .mixins import is_soft_deletable

logger = logging.getLogger(__name__)

AGGREGATES: Dict[str, Callable[..., Any]] = {
    "count": func.count,
    "sum": func.sum,
    "avg": func.avg,
    "min": func.min,
    "max": func.max,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SoftDeleteMediator:
    """
    Record store wrapper implementing soft delete semantics.

    Usage:
        mediator = SoftDeleteMediator(session)
        mediator.delete(Product, {"id": 42})
        mediator.find_unique(Product, {"id": 42})  # -> None
        mediator.find_unique(Product, {"id": 42}, include_deleted=True)
    """

    def __init__(self, session: Session, clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize the mediator.

        Args:
            session: SQLAlchemy session used as the record store
            clock: Optional callable returning the current time, used for
                deletion timestamps
        """
        self.session = session
        self.clock = clock or utcnow

    # Reads

    def find_unique(
        self,
        model: Type[Any],
        where: Where,
        *,
        expand: Optional[Expansion] = None,
        include_deleted: bool = False,
    ) -> Optional[Any]:
        """
        Fetch the single record matching a unique selector.

        Raises:
            sqlalchemy.exc.MultipleResultsFound: If the selector is not unique
        """
        stmt = self._select(model, where, expand, include_deleted)
        return self._read(model, "find_unique", lambda: self.session.scalars(stmt).one_or_none())

    def find_first(
        self,
        model: Type[Any],
        where: Optional[Where] = None,
        *,
        expand: Optional[Expansion] = None,
        order_by: Optional[OrderBy] = None,
        include_deleted: bool = False,
    ) -> Optional[Any]:
        stmt = self._select(model, where, expand, include_deleted)
        stmt = stmt.order_by(*build_order_by(model, order_by)).limit(1)
        return self._read(model, "find_first", lambda: self.session.scalars(stmt).first())

    def find_many(
        self,
        model: Type[Any],
        where: Optional[Where] = None,
        *,
        expand: Optional[Expansion] = None,
        order_by: Optional[OrderBy] = None,
        skip: Optional[int] = None,
        take: Optional[int] = None,
        include_deleted: bool = False,
    ) -> List[Any]:
        stmt = self._select(model, where, expand, include_deleted)
        stmt = stmt.order_by(*build_order_by(model, order_by))
        if skip:
            stmt = stmt.offset(skip)
        if take is not None:
            stmt = stmt.limit(take)
        return self._read(model, "find_many", lambda: list(self.session.scalars(stmt).all()))

    def count(
        self,
        model: Type[Any],
        where: Optional[Where] = None,
        *,
        include_deleted: bool = False,
    ) -> int:
        stmt = (
            select(func.count())
            .select_from(model)
            .where(*scoped_criteria(model, where, include_deleted))
        )
        return self._read(model, "count", lambda: self.session.execute(stmt).scalar_one())

    def aggregate(
        self,
        model: Type[Any],
        functions: Mapping[str, Iterable[str]],
        where: Optional[Where] = None,
        *,
        include_deleted: bool = False,
    ) -> Dict[str, Dict[str, Any]]:
        """
        Run aggregate functions over the visible records.

        Args:
            model: Model class to aggregate
            functions: Map of function name (count, sum, avg, min, max) to
                column names, e.g. ``{"sum": ["price"], "max": ["stock"]}``
            where: Optional filter

        Returns:
            Nested results, e.g. ``{"sum": {"price": 30}, "max": {"stock": 9}}``
        """
        functions = _normalize_functions(functions)
        columns = _aggregate_columns(model, functions)
        if not columns:
            raise InvalidQueryError("aggregate needs at least one function")
        stmt = select(*columns).where(*scoped_criteria(model, where, include_deleted))
        row = self._read(model, "aggregate", lambda: self.session.execute(stmt).one())
        return _nest_aggregates(row._mapping, functions)

    def group_by(
        self,
        model: Type[Any],
        by: Sequence[str],
        functions: Optional[Mapping[str, Iterable[str]]] = None,
        where: Optional[Where] = None,
        *,
        order_by: Optional[OrderBy] = None,
        include_deleted: bool = False,
    ) -> List[Dict[str, Any]]:
        """Group visible records by ``by`` columns and aggregate each group."""
        if not by:
            raise InvalidQueryError("group_by needs at least one column")
        functions = _normalize_functions(functions or {})
        keys = [column_for(model, name) for name in by]
        stmt = (
            select(*keys, *_aggregate_columns(model, functions))
            .where(*scoped_criteria(model, where, include_deleted))
            .group_by(*keys)
            .order_by(*build_order_by(model, order_by))
        )
        rows = self._read(model, "group_by", lambda: self.session.execute(stmt).all())

        groups = []
        for row in rows:
            mapping = row._mapping
            group: Dict[str, Any] = {name: mapping[name] for name in by}
            group.update(_nest_aggregates(mapping, functions))
            groups.append(group)
        return groups

    def count_related(
        self, record: Any, *relations: str, include_deleted: bool = False
    ) -> Dict[str, int]:
        """
        Count the members of collection relations of ``record``.

        Soft-deleted members are left out unless ``include_deleted`` is set.
        """
        check_include_deleted(include_deleted)
        model = type(record)
        relationships = inspect(model).relationships
        counts = {}

        for name in relations:
            if name not in relationships or not relationships[name].uselist:
                raise InvalidExpansionError(
                    f"{model.__name__} has no collection relation '{name}'",
                    entity_type=model.__name__,
                )
            target = relationships[name].mapper.class_
            stmt = (
                select(func.count())
                .select_from(target)
                .where(with_parent(record, getattr(model, name)))
                .where(*scoped_criteria(target, None, include_deleted))
            )
            counts[name] = self._read(
                target, "count_related", lambda: self.session.execute(stmt).scalar_one()
            )
        return counts

    # Writes

    def create(self, model: Type[Any], data: Mapping[str, Any]) -> Any:
        """
        Insert a record.

        Raises:
            sqlalchemy.exc.IntegrityError: On unique constraint violations such
                as a slug already held by another row
        """
        record = model(**check_patch(model, data))
        self.session.add(record)
        self._run(model, "create", self.session.flush)
        return record

    def update(self, model: Type[Any], where: Where, data: Mapping[str, Any]) -> Any:
        """
        Update the single record matching ``where``.

        Soft-deleted records are reachable here, which is what the restore
        path relies on. Changing ``deleted_at`` also sets ``is_active``.

        Raises:
            RecordNotFoundError: If the selector matches no record
            InvalidQueryError: If the patch contradicts the deletion state
        """
        patch = check_patch(model, data)
        stmt = select(model).where(*build_criteria(model, where))
        record = self._run(model, "update", lambda: self.session.scalars(stmt).one_or_none())
        if record is None:
            raise RecordNotFoundError(model.__name__, where)
        if is_soft_deletable(model):
            check_deletion_markers(model, patch, deleted=record.deleted_at is not None)

        for key, value in patch.items():
            setattr(record, key, value)
        self._run(model, "update", self.session.flush)
        return record

    def update_many(
        self, model: Type[Any], where: Optional[Where], data: Mapping[str, Any]
    ) -> int:
        patch = check_deletion_markers(model, check_patch(model, data))
        stmt = sa_update(model).where(*build_criteria(model, where)).values(**patch)
        result = self._run(model, "update_many", lambda: self.session.execute(stmt))
        return result.rowcount

    def delete(self, model: Type[Any], where: Where) -> Any:
        """
        Delete the single record matching ``where``.

        Soft-deletable records are marked deleted, deactivated and have their
        slug renamed to free it. Other records are removed.

        Returns:
            The deleted record

        Raises:
            RecordNotFoundError: If no live record matches
        """
        if not is_soft_deletable(model):
            return self._hard_delete(model, where)

        live_where = with_live_filter(model, where)
        stmt = (
            select(model)
            .where(*build_criteria(model, live_where))
            .options(load_only(model.slug, model.deleted_at))
        )
        record = self._run(model, "delete", lambda: self.session.scalars(stmt).one_or_none())
        if record is None:
            # the ordinary update path reports the missing record
            return self.update(model, live_where, {})

        original_slug = record.slug
        record.mark_deleted(self.clock())
        self._run(model, "delete", self.session.flush)

        logger.info(
            f"Soft deleted {model.__name__} {_identity(record)}: "
            f"slug '{original_slug}' -> '{record.slug}'"
        )
        return record

    def delete_many(self, model: Type[Any], where: Optional[Where] = None) -> int:
        """
        Delete every record matching ``where``.

        Soft-deletable records are marked deleted and deactivated in one bulk
        update; their slugs are left as they are.

        Returns:
            Number of affected records
        """
        criteria = build_criteria(model, where)

        if is_soft_deletable(model):
            stmt = (
                sa_update(model)
                .where(*criteria)
                .values(deleted_at=self.clock(), is_active=False)
            )
            result = self._run(model, "delete_many", lambda: self.session.execute(stmt))
            logger.info(f"Soft deleted {result.rowcount} {model.__name__} record(s)")
            return result.rowcount

        stmt = sa_delete(model).where(*criteria)
        result = self._run(model, "delete_many", lambda: self.session.execute(stmt))
        return result.rowcount

    # Internals

    def _select(
        self,
        model: Type[Any],
        where: Optional[Where],
        expand: Optional[Expansion],
        include_deleted: bool,
    ) -> Any:
        criteria = scoped_criteria(model, where, include_deleted)
        stmt = select(model).where(*criteria)

        options = build_loader_options(model, expand)
        if options:
            stmt = stmt.options(*options)

        if is_soft_deletable(model) and not include_deleted:
            logger.debug(f"Hiding soft-deleted {model.__name__} records")
        # every read reflects the store, never stale identity map state
        return stmt.execution_options(populate_existing=True)

    def _read(self, model: Type[Any], operation: str, call: Callable[[], Any]) -> Any:
        def flushed() -> Any:
            # reads refresh loaded instances, so pending edits must reach the store first
            self.session.flush()
            return call()

        return self._run(model, operation, flushed)

    def _hard_delete(self, model: Type[Any], where: Where) -> Any:
        stmt = select(model).where(*build_criteria(model, where))
        record = self._run(model, "delete", lambda: self.session.scalars(stmt).one_or_none())
        if record is None:
            raise RecordNotFoundError(model.__name__, where)

        self.session.delete(record)
        self._run(model, "delete", self.session.flush)
        return record

    def _run(self, model: Type[Any], operation: str, call: Callable[[], Any]) -> Any:
        try:
            return call()
        except SQLAlchemyError as e:
            logger.error(f"Soft delete mediator error on {model.__name__}.{operation}: {e}")
            raise


def _normalize_functions(
    functions: Mapping[str, Iterable[str]]
) -> Dict[str, List[str]]:
    return {name: list(fields) for name, fields in functions.items()}


def _aggregate_columns(
    model: Type[Any], functions: Mapping[str, Iterable[str]]
) -> List[Any]:
    columns = []
    for name, fields in functions.items():
        if name not in AGGREGATES:
            raise InvalidQueryError(
                f"Unknown aggregate '{name}', expected one of: {', '.join(AGGREGATES)}"
            )
        for field in fields:
            columns.append(AGGREGATES[name](column_for(model, field)).label(f"{name}__{field}"))
    return columns


def _nest_aggregates(
    mapping: Mapping[str, Any], functions: Mapping[str, Iterable[str]]
) -> Dict[str, Dict[str, Any]]:
    result: Dict[str, Dict[str, Any]] = {}
    for name, fields in functions.items():
        result[name] = {field: mapping[f"{name}__{field}"] for field in fields}
    return result


def _identity(record: Any) -> str:
    identity = inspect(record).identity
    if identity is None:
        return "(pending)"
    return ",".join(str(value) for value in identity)
