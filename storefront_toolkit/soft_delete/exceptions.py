"""Exceptions for soft delete operations."""

from typing import Any, Optional


class SoftDeleteError(Exception):
    """Base exception for soft delete operations."""

    def __init__(self, message: str, entity_type: Optional[str] = None):
        self.entity_type = entity_type
        super().__init__(message)


class RecordNotFoundError(SoftDeleteError):
    """Raised when an update or delete selector matches no record."""

    def __init__(self, entity_type: str, where: Any = None):
        self.where = where
        super().__init__(
            f"No {entity_type} record matches {where!r}",
            entity_type=entity_type,
        )


class SlugConflictError(SoftDeleteError):
    """Raised when a slug is already held by another record."""

    def __init__(self, entity_type: str, slug: str):
        self.slug = slug
        super().__init__(
            f"{entity_type} with slug '{slug}' already exists",
            entity_type=entity_type,
        )


class InvalidExpansionError(SoftDeleteError, ValueError):
    """Raised when a relation expansion has an unexpected shape."""


class InvalidQueryError(SoftDeleteError, ValueError):
    """Raised when read or write arguments cannot be turned into a query."""


class AlreadyDeletedException(SoftDeleteError):
    """Raised when attempting to delete an already deleted entity."""

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} {entity_id} is already deleted and cannot be deleted again",
            entity_type=entity_type,
        )


class NotDeletedException(SoftDeleteError):
    """Raised when attempting to restore a non-deleted entity."""

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} {entity_id} is not deleted and cannot be restored",
            entity_type=entity_type,
        )


class HardDeleteError(SoftDeleteError):
    """Raised when a soft-deletable record is deleted outside the mediator."""

    def __init__(self, entity_type: str):
        super().__init__(
            f"Hard delete attempted on {entity_type}. "
            "Use SoftDeleteMediator.delete() instead.",
            entity_type=entity_type,
        )
