"""
SQLAlchemy mixins for soft delete functionality.

Inheriting ``SoftDeleteMixin`` is what makes a model soft-deletable: the
mediator checks for the mixin, never for a model name.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Type

from sqlalchemy import Boolean, CheckConstraint, DateTime, String, event
from sqlalchemy.orm import Mapped, declared_attr, mapped_column
from sqlalchemy.sql.elements import ColumnElement

from .exceptions import AlreadyDeletedException, HardDeleteError, NotDeletedException
from .slugs import deleted_slug


class SoftDeleteMixin:
    """
    Mixin to add soft delete functionality to SQLAlchemy models.

    Provides:
    - ``slug`` with a store-level unique constraint
    - ``is_active`` and ``deleted_at`` markers, always written together
    - State transitions used by the mediator and the restore path

    Usage:
        class Product(SoftDeleteMixin, Base):
            __tablename__ = "products"
            id: Mapped[int] = mapped_column(primary_key=True)
            name: Mapped[str] = mapped_column(String(200))
    """

    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    @declared_attr.directive
    def __table_args__(cls) -> Any:
        """Add the deletion consistency constraint to the model's own table args."""
        existing = cls.__dict__.get("__extra_table_args__", ())
        table_name = getattr(cls, "__tablename__", cls.__name__.lower())

        constraint = CheckConstraint(
            "deleted_at IS NULL OR NOT is_active",
            name=f"ck_{table_name}_deleted_inactive",
        )
        return tuple(existing) + (constraint,)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def mark_deleted(self, when: datetime) -> None:
        """
        Move this record into the soft-deleted state.

        The slug is renamed so the original value is free for new or
        restored records straight away.

        Raises:
            AlreadyDeletedException: If record is already deleted
        """
        if self.is_deleted:
            raise AlreadyDeletedException(
                self.__class__.__name__, getattr(self, "id", "unknown")
            )

        self.deleted_at = when
        self.is_active = False
        self.slug = deleted_slug(self.slug, when)

    def mark_restored(self, slug: str) -> None:
        """
        Bring a soft-deleted record back to life under ``slug``.

        Raises:
            NotDeletedException: If record is not deleted
        """
        if not self.is_deleted:
            raise NotDeletedException(
                self.__class__.__name__, getattr(self, "id", "unknown")
            )

        self.deleted_at = None
        self.is_active = True
        self.slug = slug

    @classmethod
    def live_criteria(cls) -> List[ColumnElement[bool]]:
        """Criteria matching records that are not soft deleted."""
        return [cls.deleted_at.is_(None)]


def is_soft_deletable(model: Any) -> bool:
    """Whether ``model`` (class or instance) carries the soft delete capability."""
    cls = model if isinstance(model, type) else type(model)
    return issubclass(cls, SoftDeleteMixin)


def soft_deletable_models(base_class: Type[Any]) -> Dict[str, Type[Any]]:
    """
    Map lookup names to soft-deletable models of a declarative base.

    Each model is reachable by its lowercase class name and its table name,
    so ``product``, ``products`` and ``Product`` all resolve.
    """
    registry: Dict[str, Type[Any]] = {}
    for mapper in base_class.registry.mappers:
        model = mapper.class_
        if not issubclass(model, SoftDeleteMixin):
            continue
        registry[model.__name__.lower()] = model
        registry[str(mapper.local_table.name).lower()] = model
    return registry


def prevent_hard_delete(mapper: Any, connection: Any, target: Any) -> None:
    """
    Prevent hard deletes on models with SoftDeleteMixin.

    This function should be connected to SQLAlchemy's before_delete event.
    """
    if isinstance(target, SoftDeleteMixin):
        raise HardDeleteError(target.__class__.__name__)


def register_soft_delete_listeners(base_class: Type[Any]) -> None:
    """
    Register SQLAlchemy event listeners for soft delete functionality.

    Args:
        base_class: The declarative base class
    """
    for mapper in base_class.registry.mappers:
        if issubclass(mapper.class_, SoftDeleteMixin) and not event.contains(
            mapper.class_, "before_delete", prevent_hard_delete
        ):
            event.listen(mapper.class_, "before_delete", prevent_hard_delete)
