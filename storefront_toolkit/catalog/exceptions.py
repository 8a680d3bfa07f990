"""Exceptions raised by the catalog services."""

from typing import Any

from ..soft_delete.exceptions import SoftDeleteError


class CatalogConflictError(SoftDeleteError):
    """Raised when a catalog change conflicts with existing records."""


class DeletionBlockedError(CatalogConflictError):
    """Raised when a record cannot be deleted while dependants remain."""

    def __init__(self, entity_type: str, entity_id: Any, dependants: str, count: int):
        self.entity_id = entity_id
        self.dependants = dependants
        self.count = count
        super().__init__(
            f"Cannot delete {entity_type} {entity_id} with existing {dependants} ({count})",
            entity_type=entity_type,
        )


class InvalidParentError(CatalogConflictError):
    """Raised when a category would become its own parent."""

    def __init__(self, category_id: Any):
        self.entity_id = category_id
        super().__init__(
            f"Category {category_id} cannot be its own parent",
            entity_type="Category",
        )
