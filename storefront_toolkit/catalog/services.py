"""
Catalog services for categories and products.

All store access goes through ``SoftDeleteMediator``, so listings hide
soft-deleted records and deletes are recoverable. Updating a soft-deleted
record brings it back, with its original slug when that is still free.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Type

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import StorefrontConfig, get_config
from ..soft_delete.exceptions import RecordNotFoundError, SlugConflictError
from ..soft_delete.mediator import SoftDeleteMediator
from ..soft_delete.models import Expand
from ..soft_delete.slugs import SlugResolver, slugify
from .exceptions import DeletionBlockedError, InvalidParentError
from .models import Category, Product
from .schemas import CategoryCreate, CategoryUpdate, ProductCreate, ProductUpdate

logger = logging.getLogger(__name__)

ACTIVE_ONLY = {"is_active": True}


class CatalogService:
    """Behaviour shared by the category and product services."""

    model: Type[Any]

    def __init__(
        self,
        session: Session,
        mediator: Optional[SoftDeleteMediator] = None,
        config: Optional[StorefrontConfig] = None,
    ):
        self.session = session
        self.mediator = mediator or SoftDeleteMediator(session)
        self.slugs = SlugResolver(self.mediator)
        self.config = config or get_config()

    @property
    def entity_type(self) -> str:
        return self.model.__name__

    def find_one(
        self, id: int, include_deleted: bool = False, expand: Optional[Any] = None
    ) -> Any:
        """
        Fetch one record by id.

        Raises:
            RecordNotFoundError: If the record does not exist or is hidden
        """
        record = self.mediator.find_unique(
            self.model, {"id": id}, expand=expand, include_deleted=include_deleted
        )
        if record is None:
            raise RecordNotFoundError(self.entity_type, {"id": id})
        return record

    def ensure_slug_free(self, slug: str, exclude: Optional[int] = None) -> None:
        """Raise ``SlugConflictError`` if another record already holds ``slug``."""
        criteria = [self.model.slug == slug]
        if exclude is not None:
            criteria.append(self.model.id != exclude)
        if self.mediator.count(self.model, criteria, include_deleted=True):
            raise SlugConflictError(self.entity_type, slug)

    def _insert(self, data: Dict[str, Any]) -> Any:
        try:
            record = self.mediator.create(self.model, data)
        except IntegrityError as e:
            self.session.rollback()
            if "slug" in str(e.orig):
                raise SlugConflictError(self.entity_type, data["slug"]) from e
            raise

        logger.info(f"Created {self.entity_type} {record.id} '{record.slug}'")
        return record

    def _apply_update(self, id: int, data: Dict[str, Any]) -> Any:
        """
        Write ``data`` to record ``id``, restoring it when it is soft deleted.

        Raises:
            RecordNotFoundError: If no record exists, deleted or not
            SlugConflictError: If an explicit slug is held by another record
        """
        existing = self.find_one(id, include_deleted=True)

        if data.get("slug") is None:
            data.pop("slug", None)
        elif data["slug"] != existing.slug:
            self.ensure_slug_free(data["slug"], exclude=id)

        restoring = existing.is_deleted
        if restoring:
            data["deleted_at"] = None
            data["is_active"] = True
            if "slug" not in data:
                data["slug"] = self.slugs.resolve_unique_slug(
                    self.model, existing.slug, exclude=id
                )

        try:
            record = self.mediator.update(self.model, {"id": id}, data)
        except IntegrityError as e:
            self.session.rollback()
            raise SlugConflictError(self.entity_type, data.get("slug", existing.slug)) from e

        if restoring:
            logger.info(f"Restored {self.entity_type} {id} as '{record.slug}'")
        else:
            logger.info(f"Updated {self.entity_type} {id}")
        return record


class CategoryService(CatalogService):
    """
    Category management.

    Usage:
        service = CategoryService(session)
        food = service.create(CategoryCreate(name="Food"))
        service.remove(food.id)
        service.update(food.id, CategoryUpdate())  # restores as 'food'
    """

    model = Category

    def create(self, payload: CategoryCreate) -> Category:
        """
        Create a category.

        The slug comes from the payload or the name and is made unique by
        appending ``-1``, ``-2``, ... when taken.
        """
        data = payload.model_dump()
        if data["parent_id"] is not None:
            super().find_one(data["parent_id"])

        base = data.pop("slug") or slugify(data["name"])
        data["slug"] = self.slugs.resolve_unique_slug(Category, base)
        return self._insert(data)

    def find_all(self, include_deleted: bool = False) -> List[Category]:
        """Active categories, or every category for administrators."""
        return self.mediator.find_many(
            Category,
            {} if include_deleted else ACTIVE_ONLY,
            expand={"parent": True, "children": True},
            order_by=["sort_order", "name"],
            include_deleted=include_deleted,
        )

    def find_one(
        self, id: int, include_deleted: bool = False, expand: Optional[Any] = None
    ) -> Category:
        if expand is None:
            expand = self._detail_expansion(include_deleted)
        return super().find_one(id, include_deleted=include_deleted, expand=expand)

    def find_by_slug(self, slug: str) -> Category:
        category = self.mediator.find_unique(
            Category, {"slug": slug}, expand=self._detail_expansion(False)
        )
        if category is None:
            raise RecordNotFoundError("Category", {"slug": slug})
        return category

    def update(self, id: int, payload: CategoryUpdate) -> Category:
        """
        Update a category, restoring it first when it is soft deleted.

        Raises:
            RecordNotFoundError: Category or new parent does not exist
            InvalidParentError: The category would become its own parent
            SlugConflictError: The requested slug is taken
        """
        data = payload.changes()

        parent_id = data.get("parent_id")
        if parent_id is not None:
            if parent_id == id:
                raise InvalidParentError(id)
            if self.mediator.find_unique(Category, {"id": parent_id}) is None:
                raise RecordNotFoundError("Category", {"id": parent_id})

        return self._apply_update(id, data)

    def remove(self, id: int) -> Category:
        """
        Soft delete a category that has no live products or subcategories.

        Raises:
            RecordNotFoundError: No live category with this id
            DeletionBlockedError: Live products or subcategories remain
        """
        category = super().find_one(id)

        counts = self.mediator.count_related(category, "products", "children")
        if counts["products"]:
            raise DeletionBlockedError("Category", id, "products", counts["products"])
        if counts["children"]:
            raise DeletionBlockedError("Category", id, "subcategories", counts["children"])

        return self.mediator.delete(Category, {"id": id})

    def hierarchy(self) -> List[Category]:
        """Active root categories with their active children loaded."""
        return self.mediator.find_many(
            Category,
            {"parent_id": None, "is_active": True},
            expand={"children": Expand(where=ACTIVE_ONLY)},
            order_by=["sort_order", "name"],
        )

    def products(self, category_id: int, include_deleted: bool = False) -> List[Product]:
        """
        Products of one category.

        Raises:
            RecordNotFoundError: If the category is missing or hidden
        """
        super().find_one(category_id, include_deleted=include_deleted)
        return self.mediator.find_many(
            Product,
            {"category_id": category_id, **({} if include_deleted else ACTIVE_ONLY)},
            order_by=["-featured", "-created_at", "-id"],
            include_deleted=include_deleted,
        )

    @staticmethod
    def _detail_expansion(include_deleted: bool) -> Dict[str, Any]:
        return {
            "parent": True,
            "children": True,
            "products": Expand(where={} if include_deleted else ACTIVE_ONLY),
        }


class ProductService(CatalogService):
    """
    Product management.

    Usage:
        service = ProductService(session)
        page = service.find_all(category_slug="food", search="lentil")
        page["products"], page["pagination"]["total"]
    """

    model = Product

    def create(self, payload: ProductCreate) -> Product:
        """
        Create a product.

        Raises:
            SlugConflictError: An explicitly requested slug is already taken
            RecordNotFoundError: The category does not exist
        """
        data = payload.model_dump()
        requested = data.pop("slug")
        if requested:
            self.ensure_slug_free(requested)
        if data["category_id"] is not None:
            self._require_category(data["category_id"])

        base = slugify(requested or data["name"])
        data["slug"] = self.slugs.resolve_unique_slug(Product, base)
        return self._insert(data)

    def find_all(
        self,
        category_id: Optional[int] = None,
        category_slug: Optional[str] = None,
        status: Optional[str] = None,
        featured: Optional[bool] = None,
        in_stock: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
        include_deleted: bool = False,
    ) -> Dict[str, Any]:
        """
        Paginated product listing.

        Args:
            category_id: Only products of this category
            category_slug: Only products of the category with this slug,
                ignored when ``category_id`` is given
            status: Only products with this status
            featured: Only (non-)featured products
            in_stock: Only products with (or without) stock
            search: Case-insensitive match on name or description
            page: 1-based page number
            limit: Page size, bounded by ``max_page_size``
            include_deleted: Administrative listing including archived and
                soft-deleted products

        Returns:
            ``{"products": [...], "pagination": {page, limit, total, pages}}``
        """
        page = max(page or 1, 1)
        limit = self.config.page_size(limit)

        if category_slug and category_id is None:
            category = self.mediator.find_unique(Category, {"slug": category_slug})
            if category is None:
                return _page([], page, limit, 0)
            category_id = category.id

        criteria = []
        if not include_deleted:
            criteria.append(Product.is_active.is_(True))
        if category_id is not None:
            criteria.append(Product.category_id == category_id)
        if status:
            criteria.append(Product.status == status)
        if featured is not None:
            criteria.append(Product.featured == featured)
        if in_stock is not None:
            criteria.append(Product.stock > 0 if in_stock else Product.stock <= 0)
        if search:
            pattern = f"%{search}%"
            criteria.append(
                or_(Product.name.ilike(pattern), Product.description.ilike(pattern))
            )

        products = self.mediator.find_many(
            Product,
            criteria,
            expand={"category": True},
            order_by=["-featured", "-created_at", "-id"],
            skip=(page - 1) * limit,
            take=limit,
            include_deleted=include_deleted,
        )
        total = self.mediator.count(Product, criteria, include_deleted=include_deleted)
        return _page(products, page, limit, total)

    def find_one(
        self, id: int, include_deleted: bool = False, expand: Optional[Any] = None
    ) -> Product:
        if expand is None:
            expand = {"category": True}
        return super().find_one(id, include_deleted=include_deleted, expand=expand)

    def find_by_slug(self, slug: str) -> Product:
        product = self.mediator.find_unique(
            Product, {"slug": slug}, expand={"category": True}
        )
        if product is None:
            raise RecordNotFoundError("Product", {"slug": slug})
        return product

    def update(self, id: int, payload: ProductUpdate) -> Product:
        """
        Update a product, restoring it first when it is soft deleted.

        Raises:
            RecordNotFoundError: Product or new category does not exist
            SlugConflictError: The requested slug is taken
        """
        data = payload.changes()
        if data.get("category_id") is not None:
            self._require_category(data["category_id"])
        return self._apply_update(id, data)

    def remove(self, id: int) -> Product:
        """
        Soft delete a product that was never ordered.

        Raises:
            RecordNotFoundError: No live product with this id
            DeletionBlockedError: The product has order items
        """
        product = super().find_one(id)

        ordered = self.mediator.count_related(product, "order_items")["order_items"]
        if ordered:
            raise DeletionBlockedError("Product", id, "orders", ordered)

        return self.mediator.delete(Product, {"id": id})

    def _require_category(self, category_id: int) -> None:
        if self.mediator.find_unique(Category, {"id": category_id}) is None:
            raise RecordNotFoundError("Category", {"id": category_id})


def _page(products: List[Product], page: int, limit: int, total: int) -> Dict[str, Any]:
    return {
        "products": products,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if limit else 0,
        },
    }
