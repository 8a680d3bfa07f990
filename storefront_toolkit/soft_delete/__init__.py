"""
Soft Delete Module - recoverable deletion for catalog records.

Provides the mediator that turns deletes into soft deletes and hides deleted
records from reads and relation expansions, plus mixins, slug helpers and
the restore service.
"""

from .exceptions import (
    AlreadyDeletedException,
    HardDeleteError,
    InvalidExpansionError,
    InvalidQueryError,
    NotDeletedException,
    RecordNotFoundError,
    SlugConflictError,
    SoftDeleteError,
)
from .expansion import build_loader_options, normalize_expansion
from .mediator import SoftDeleteMediator
from .mixins import (
    SoftDeleteMixin,
    is_soft_deletable,
    register_soft_delete_listeners,
    soft_deletable_models,
)
from .models import Expand, TrashReport
from .services import SoftDeleteService
from .slugs import SlugResolver, deleted_slug, slugify, strip_deleted_suffix

__all__ = [
    # Mediator
    "SoftDeleteMediator",
    # Mixins
    "SoftDeleteMixin",
    "is_soft_deletable",
    "soft_deletable_models",
    "register_soft_delete_listeners",
    # Services
    "SoftDeleteService",
    "SlugResolver",
    # Models
    "Expand",
    "TrashReport",
    # Helpers
    "build_loader_options",
    "normalize_expansion",
    "deleted_slug",
    "strip_deleted_suffix",
    "slugify",
    # Exceptions
    "SoftDeleteError",
    "RecordNotFoundError",
    "SlugConflictError",
    "InvalidExpansionError",
    "InvalidQueryError",
    "AlreadyDeletedException",
    "NotDeletedException",
    "HardDeleteError",
]
