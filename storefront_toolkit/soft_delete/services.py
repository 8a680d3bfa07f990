"""
Service layer for soft delete operations.

Restoration lives here rather than in the mediator: deleting is automatic,
restoring is a decision the caller makes.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Type

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .exceptions import NotDeletedException, RecordNotFoundError, SlugConflictError
from .filters import Where, check_include_deleted
from .mediator import SoftDeleteMediator
from .mixins import is_soft_deletable, soft_deletable_models
from .models import TrashReport
from .slugs import SlugResolver

logger = logging.getLogger(__name__)


class SoftDeleteService:
    """
    Service for restoring and inspecting soft-deleted records.

    Handles restoration with slug collision resolution, administrative
    listings of deleted records and trash reporting.
    """

    def __init__(
        self,
        session: Session,
        mediator: Optional[SoftDeleteMediator] = None,
        base_class: Optional[Type[Any]] = None,
    ):
        """
        Initialize the soft delete service.

        Args:
            session: SQLAlchemy database session
            mediator: Optional mediator sharing ``session``
            base_class: Optional declarative base used to look models up by name
        """
        self.session = session
        self.mediator = mediator or SoftDeleteMediator(session)
        self.slugs = SlugResolver(self.mediator)
        self.base_class = base_class

    def restore(self, model: Type[Any], where: Where, slug: Optional[str] = None) -> Any:
        """
        Restore a soft-deleted record.

        Args:
            model: Soft-deletable model class
            where: Selector matching exactly one record
            slug: Optional explicit slug; when omitted the original slug is
                recovered and made unique

        Returns:
            Restored record

        Raises:
            RecordNotFoundError: No record matches, deleted or not
            NotDeletedException: The record is live
            SlugConflictError: The slug was taken between probe and write
        """
        self._require_soft_deletable(model)

        record = self.mediator.find_unique(model, where, include_deleted=True)
        if record is None:
            raise RecordNotFoundError(model.__name__, where)
        if not record.is_deleted:
            raise NotDeletedException(model.__name__, record.id)

        target_slug = slug or self.slugs.resolve_unique_slug(
            model, record.slug, exclude=record.id
        )
        record.mark_restored(target_slug)

        try:
            self.session.flush()
        except IntegrityError as e:
            self.session.rollback()
            raise SlugConflictError(model.__name__, target_slug) from e

        logger.info(f"Restored {model.__name__} {record.id} as '{target_slug}'")
        return record

    def list_deleted(
        self,
        model: Type[Any],
        deleted_after: Optional[datetime] = None,
        deleted_before: Optional[datetime] = None,
        skip: int = 0,
        take: int = 100,
    ) -> List[Any]:
        """
        Get soft-deleted records, newest deletion first.

        Args:
            model: Soft-deletable model class
            deleted_after: Only records deleted at or after this time
            deleted_before: Only records deleted at or before this time
            skip: Offset for pagination
            take: Maximum records to return
        """
        self._require_soft_deletable(model)

        criteria = [model.deleted_at.is_not(None)]
        if deleted_after:
            criteria.append(model.deleted_at >= deleted_after)
        if deleted_before:
            criteria.append(model.deleted_at <= deleted_before)

        return self.mediator.find_many(
            model,
            criteria,
            order_by=["-deleted_at"],
            skip=skip,
            take=take,
            include_deleted=True,
        )

    def generate_trash_report(
        self,
        start_date: datetime,
        end_date: datetime,
        models: Optional[Iterable[Type[Any]]] = None,
    ) -> TrashReport:
        """
        Generate a report of soft deletions in a period.

        Args:
            start_date: Report period start
            end_date: Report period end
            models: Optional models to include, defaults to every
                soft-deletable model of ``base_class``

        Returns:
            Trash report with counts per entity type
        """
        report = TrashReport(start_date=start_date, end_date=end_date)

        for model in models or self._all_soft_delete_models():
            in_period = self.mediator.count(
                model,
                [model.deleted_at >= start_date, model.deleted_at <= end_date],
                include_deleted=True,
            )
            live = self.mediator.count(model)
            trashed = self.mediator.count(
                model, [model.deleted_at.is_not(None)], include_deleted=True
            )
            report.add_type(model.__name__, deleted=in_period, live=live, trashed=trashed)

        return report

    def get_model(self, name: str) -> Type[Any]:
        """
        Resolve a soft-deletable model by name, e.g. ``product`` or ``categories``.

        Raises:
            ValueError: If no such model is registered
        """
        registry = self._registry()
        try:
            return registry[name.lower()]
        except KeyError:
            known = ", ".join(sorted({m.__name__.lower() for m in registry.values()}))
            raise ValueError(
                f"Entity type {name} not found. Known types: {known}"
            ) from None

    def find(self, model: Type[Any], where: Where, include_deleted: bool = False) -> Any:
        """Fetch one record, raising when it is missing."""
        check_include_deleted(include_deleted)
        record = self.mediator.find_unique(model, where, include_deleted=include_deleted)
        if record is None:
            raise RecordNotFoundError(model.__name__, where)
        return record

    def _registry(self) -> Dict[str, Type[Any]]:
        if self.base_class is None:
            return {}
        return soft_deletable_models(self.base_class)

    def _all_soft_delete_models(self) -> List[Type[Any]]:
        return sorted(set(self._registry().values()), key=lambda m: m.__name__)

    def _require_soft_deletable(self, model: Type[Any]) -> None:
        if not is_soft_deletable(model):
            raise TypeError(f"{model.__name__} does not support soft delete")
