"""
Data models for soft delete operations.

``Expand`` is the typed relation expansion tree read by the visibility
propagator. ``TrashReport`` summarises soft deletions for a period.
"""

from datetime import datetime
from typing import Any, Dict, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool


class Expand(BaseModel):
    """
    One node of a relation expansion tree.

    ``include`` maps relation names to either ``True`` (load the relation as
    is) or a nested ``Expand`` carrying its own filter and further relations.
    ``include_deleted`` lets soft-deleted records through at this node only.

    Example:
        >>> Expand(include={"category": True, "order_items": {"include": {"order": True}}})
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    where: Dict[str, Any] = Field(
        default_factory=dict, description="Column filters for the related records"
    )
    include: Dict[str, Union[StrictBool, "Expand"]] = Field(
        default_factory=dict, description="Nested relations to load"
    )
    include_deleted: StrictBool = Field(
        False, description="Show soft-deleted records at this node"
    )


Expand.model_rebuild()


class TrashReport(BaseModel):
    """Summary of soft-deleted records for a reporting period."""

    start_date: datetime = Field(..., description="Report period start")
    end_date: datetime = Field(..., description="Report period end")
    total_deletions: int = Field(0, description="Records deleted in the period")
    by_type: Dict[str, int] = Field(
        default_factory=dict, description="Deletions in the period by entity type"
    )
    live_by_type: Dict[str, int] = Field(
        default_factory=dict, description="Live records by entity type"
    )
    deleted_by_type: Dict[str, int] = Field(
        default_factory=dict, description="All soft-deleted records by entity type"
    )

    def add_type(self, entity_type: str, deleted: int, live: int, trashed: int) -> None:
        """Add the counts of one entity type to the report."""
        self.total_deletions += deleted
        self.by_type[entity_type] = self.by_type.get(entity_type, 0) + deleted
        self.live_by_type[entity_type] = live
        self.deleted_by_type[entity_type] = trashed
