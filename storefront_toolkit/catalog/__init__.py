"""
Catalog Module - categories, products and the records that reference them.

Products and categories are soft-deletable; their services route every
store call through the soft delete mediator.
"""

from .exceptions import CatalogConflictError, DeletionBlockedError, InvalidParentError
from .models import Base, Category, Order, OrderItem, Product, User
from .schemas import CategoryCreate, CategoryUpdate, ProductCreate, ProductUpdate
from .services import CategoryService, ProductService

__all__ = [
    # Models
    "Base",
    "Category",
    "Product",
    "Order",
    "OrderItem",
    "User",
    # Schemas
    "CategoryCreate",
    "CategoryUpdate",
    "ProductCreate",
    "ProductUpdate",
    # Services
    "CategoryService",
    "ProductService",
    # Exceptions
    "CatalogConflictError",
    "DeletionBlockedError",
    "InvalidParentError",
]
