"""
Relation visibility propagation.

Turns a caller's expansion tree into SQLAlchemy loader options. Every
relation that points at a soft-deletable model gets the "not deleted"
criteria attached, at any depth, so a live record never carries a deleted
neighbour in its expanded view.
"""

import logging
from typing import Any, List, Mapping, Optional, Type, Union

from pydantic import ValidationError
from sqlalchemy import inspect
from sqlalchemy.orm import selectinload

from .exceptions import InvalidExpansionError
from .filters import build_criteria, with_live_filter
from .mixins import is_soft_deletable
from .models import Expand

logger = logging.getLogger(__name__)

Expansion = Union[Expand, Mapping[str, Any]]


def normalize_expansion(expand: Optional[Expansion]) -> Optional[Expand]:
    """
    Validate a caller's expansion into an ``Expand`` tree.

    A plain mapping is taken as the top-level ``include`` map, so
    ``{"category": True}`` and ``Expand(include={"category": True})`` mean
    the same thing.

    Raises:
        InvalidExpansionError: If any node is neither a boolean nor a mapping
    """
    if expand is None:
        return None
    if isinstance(expand, Expand):
        return expand
    if not isinstance(expand, Mapping):
        raise InvalidExpansionError(
            f"Expansion must be a mapping of relation names, got {type(expand).__name__}"
        )
    try:
        return Expand.model_validate({"include": dict(expand)})
    except ValidationError as e:
        raise InvalidExpansionError(f"Malformed relation expansion: {e}") from e


def build_loader_options(model: Type[Any], expand: Optional[Expansion]) -> List[Any]:
    """
    Build loader options for ``expand`` rooted at ``model``.

    Args:
        model: Model class the expansion starts from
        expand: Expansion tree or mapping of relation names

    Returns:
        A list of ``selectinload`` options, nested the same way as the tree

    Raises:
        InvalidExpansionError: On malformed nodes or unknown relation names
    """
    tree = normalize_expansion(expand)
    if tree is None:
        return []
    return _options_for(model, tree)


def _options_for(model: Type[Any], node: Expand) -> List[Any]:
    relationships = inspect(model).relationships
    options = []

    for name, child in node.include.items():
        if child is False:
            continue
        if name not in relationships:
            raise InvalidExpansionError(
                f"{model.__name__} has no relation '{name}'",
                entity_type=model.__name__,
            )

        target = relationships[name].mapper.class_
        child_node = child if isinstance(child, Expand) else Expand()
        criteria = _relation_criteria(target, child_node)

        attribute = getattr(model, name)
        loader = selectinload(attribute.and_(*criteria) if criteria else attribute)

        nested = _options_for(target, child_node)
        if nested:
            loader = loader.options(*nested)
        options.append(loader)

    return options


def _relation_criteria(target: Type[Any], node: Expand) -> List[Any]:
    if is_soft_deletable(target) and not node.include_deleted:
        logger.debug(f"Hiding soft-deleted {target.__name__} in expanded relation")
        return build_criteria(target, with_live_filter(target, node.where))
    return build_criteria(target, node.where or None)
