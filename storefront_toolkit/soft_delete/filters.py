"""
Filter building and the read-filter injector.

Callers describe records either with a mapping of column names to values or
with SQLAlchemy boolean expressions. Reads on soft-deletable models get a
``deleted_at IS NULL`` predicate added here unless the caller opts out.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Type, Union

from sqlalchemy import inspect
from sqlalchemy.sql.elements import ColumnElement

from .exceptions import InvalidQueryError
from .mixins import is_soft_deletable

Where = Union[Mapping[str, Any], Sequence[ColumnElement[bool]], ColumnElement[bool]]
OrderBy = Sequence[Union[str, ColumnElement[Any]]]

_MULTI_VALUE_TYPES = (list, tuple, set, frozenset)


def column_for(model: Type[Any], name: str) -> Any:
    """Return the mapped column attribute ``name`` of ``model``."""
    mapper = inspect(model)
    if name not in mapper.column_attrs:
        raise InvalidQueryError(
            f"{model.__name__} has no column '{name}'", entity_type=model.__name__
        )
    return getattr(model, name)


def build_criteria(
    model: Type[Any], where: Optional[Where]
) -> List[ColumnElement[bool]]:
    """
    Translate a filter into SQLAlchemy criteria.

    Mapping values: ``None`` becomes ``IS NULL``, lists, tuples and sets
    become ``IN``, everything else equality.
    """
    if where is None:
        return []
    if isinstance(where, ColumnElement):
        return [where]
    if isinstance(where, Mapping):
        criteria = []
        for name, value in where.items():
            column = column_for(model, name)
            if value is None:
                criteria.append(column.is_(None))
            elif isinstance(value, _MULTI_VALUE_TYPES):
                criteria.append(column.in_(list(value)))
            else:
                criteria.append(column == value)
        return criteria
    if isinstance(where, (list, tuple)):
        for clause in where:
            if not isinstance(clause, ColumnElement):
                raise InvalidQueryError(
                    f"Unsupported filter clause {clause!r} for {model.__name__}",
                    entity_type=model.__name__,
                )
        return list(where)

    raise InvalidQueryError(
        f"Unsupported filter {where!r} for {model.__name__}",
        entity_type=model.__name__,
    )


def with_live_filter(model: Type[Any], where: Optional[Where]) -> Where:
    """
    Add the "not deleted" predicate to ``where``.

    A caller-supplied ``deleted_at`` key is overwritten rather than merged.
    """
    if where is None:
        return {"deleted_at": None}
    if isinstance(where, Mapping):
        return {**where, "deleted_at": None}
    return build_criteria(model, where) + list(model.live_criteria())


def scoped_criteria(
    model: Type[Any], where: Optional[Where], include_deleted: bool = False
) -> List[ColumnElement[bool]]:
    """Criteria for a read, with soft-deleted records hidden by default."""
    check_include_deleted(include_deleted)
    if include_deleted or not is_soft_deletable(model):
        return build_criteria(model, where)
    return build_criteria(model, with_live_filter(model, where))


def check_include_deleted(include_deleted: Any) -> None:
    if not isinstance(include_deleted, bool):
        raise InvalidQueryError(
            f"include_deleted must be a bool, got {type(include_deleted).__name__}"
        )


def build_order_by(model: Type[Any], order_by: Optional[OrderBy]) -> List[Any]:
    """Column names sort ascending, ``-name`` sorts descending."""
    clauses: List[Any] = []
    for item in order_by or ():
        if isinstance(item, str):
            if item.startswith("-"):
                clauses.append(column_for(model, item[1:]).desc())
            else:
                clauses.append(column_for(model, item).asc())
        else:
            clauses.append(item)
    return clauses


def check_patch(model: Type[Any], data: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate that every key of an update patch is a mapped attribute."""
    mapper = inspect(model)
    for key in data:
        if key not in mapper.attrs:
            raise InvalidQueryError(
                f"{model.__name__} has no attribute '{key}'",
                entity_type=model.__name__,
            )
    return dict(data)


def check_deletion_markers(
    model: Type[Any], patch: Dict[str, Any], deleted: Optional[bool] = None
) -> Dict[str, Any]:
    """
    Keep ``deleted_at`` and ``is_active`` consistent within an update patch.

    A patch touching ``deleted_at`` also gets the matching ``is_active``.
    Setting ``is_active=True`` alone is only allowed on a record known to be
    live (``deleted=False``); bulk updates pass ``deleted=None`` and are
    refused. Deactivating a live record stays possible.

    Raises:
        InvalidQueryError: If the patch contradicts the deletion state
    """
    if not is_soft_deletable(model):
        return patch

    if "deleted_at" in patch:
        active = patch["deleted_at"] is None
        if patch.get("is_active", active) != active:
            raise InvalidQueryError(
                f"is_active={patch['is_active']} contradicts deleted_at on {model.__name__}",
                entity_type=model.__name__,
            )
        patch["is_active"] = active
    elif patch.get("is_active") is True and deleted is not False:
        raise InvalidQueryError(
            f"Cannot activate a soft-deleted {model.__name__} without clearing deleted_at",
            entity_type=model.__name__,
        )
    return patch
