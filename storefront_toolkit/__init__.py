"""
Storefront Python Toolkit - Catalog store core with recoverable deletions.

Products and categories are never removed from the store. Deleting one hides
it from every ordinary read, frees its slug for new records and keeps the row
so administrators can list and restore it later.

Key Features
------------
* **Soft Delete Mediator**: Turns deletes into updates and hides deleted
  records from reads, counts, aggregates and nested relation expansions
* **Restoration**: Brings records back under their original slug, or the
  first free ``slug-N`` when it has been taken meanwhile
* **Catalog Services**: Category and product management on top of the mediator
* **CLI**: ``storefront trash list|delete|restore|report`` for administrators

Quick Start
-----------
>>> from storefront_toolkit import SoftDeleteMediator, Product
>>>
>>> mediator = SoftDeleteMediator(session)
>>> mediator.delete(Product, {"id": 42})
>>> mediator.find_unique(Product, {"id": 42})  # hidden
>>> mediator.find_unique(Product, {"id": 42}, include_deleted=True)
"""

__version__ = "1.0.0"

from .catalog import (
    Base,
    Category,
    CategoryService,
    DeletionBlockedError,
    Product,
    ProductService,
)
from .config import StorefrontConfig, configure, get_config
from .soft_delete import (
    Expand,
    RecordNotFoundError,
    SlugConflictError,
    SoftDeleteMediator,
    SoftDeleteMixin,
    SoftDeleteService,
)

__all__ = [
    # Soft Delete
    "SoftDeleteMediator",
    "SoftDeleteMixin",
    "SoftDeleteService",
    "Expand",
    "RecordNotFoundError",
    "SlugConflictError",
    # Catalog
    "Base",
    "Category",
    "Product",
    "CategoryService",
    "ProductService",
    "DeletionBlockedError",
    # Configuration
    "StorefrontConfig",
    "configure",
    "get_config",
]
