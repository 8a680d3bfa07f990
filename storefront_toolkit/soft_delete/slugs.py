"""
Slug helpers for soft-deleted records.

A soft-deleted record keeps its row but gives up its slug by renaming it to
``<slug>-deleted-<unix seconds>``. Restoring the record strips that suffix
again and probes the store until a free slug is found.
"""

import logging
import re
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional, Type

from sqlalchemy import inspect

if TYPE_CHECKING:
    from .mediator import SoftDeleteMediator

logger = logging.getLogger(__name__)

DELETED_MARKER = "-deleted-"
DELETED_SUFFIX_PATTERN = re.compile(r"-deleted-\d+$")


def deleted_slug(slug: str, when: datetime) -> str:
    """Return the slug a record carries while soft deleted."""
    return f"{slug}{DELETED_MARKER}{int(when.timestamp())}"


def strip_deleted_suffix(slug: str) -> str:
    """Recover the original slug from a soft-deleted one."""
    return DELETED_SUFFIX_PATTERN.sub("", slug)


def is_deleted_slug(slug: str) -> bool:
    return DELETED_SUFFIX_PATTERN.search(slug) is not None


def slugify(name: str) -> str:
    """
    Convert a display name to a URL-friendly slug.

    >>> slugify("  Red Lentils (Masoor Dal) 1kg ")
    'red-lentils-masoor-dal-1kg'
    """
    if not name:
        return ""
    slug = name.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_-]+", "-", slug)
    return slug.strip("-")


def default_slug_base(model: Type[Any]) -> str:
    """Base used when a record has no usable name or slug."""
    return getattr(model, "__slug_fallback__", model.__name__.lower())


class SlugResolver:
    """
    Find a slug no other record holds.

    The probe covers every row, deleted or not, because the unique constraint
    lives on the literal slug column. The probe and the later write are not
    atomic; the constraint stays the final arbiter.
    """

    def __init__(self, mediator: "SoftDeleteMediator"):
        self.mediator = mediator

    def resolve_unique_slug(
        self, model: Type[Any], candidate: str, exclude: Optional[Any] = None
    ) -> str:
        """
        Return ``candidate`` or the first free ``candidate-N``.

        Args:
            model: Soft-deletable model class to probe
            candidate: Desired slug, possibly still carrying a deleted suffix
            exclude: Primary key of the record being written, so it never
                collides with itself

        Returns:
            A slug that is free at the time of the probe
        """
        base = strip_deleted_suffix(candidate or "") or default_slug_base(model)
        slug = base
        suffix = 0

        while self._is_taken(model, slug, exclude):
            suffix += 1
            slug = f"{base}-{suffix}"

        if suffix:
            logger.debug(f"Slug '{base}' taken for {model.__name__}, using '{slug}'")
        return slug

    def _is_taken(self, model: Type[Any], slug: str, exclude: Optional[Any]) -> bool:
        criteria = [model.slug == slug]
        if exclude is not None:
            pk = inspect(model).primary_key[0]
            criteria.append(pk != exclude)
        return self.mediator.count(model, criteria, include_deleted=True) > 0
