"""
Tests for the soft delete mediator.

Covers the delete interceptors, the read filter and the pass-through
operations against an in-memory SQLite store.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from storefront_toolkit.catalog.models import Category, Order, OrderItem, Product
from storefront_toolkit.soft_delete import (
    InvalidQueryError,
    RecordNotFoundError,
    SoftDeleteMediator,
)


@pytest.fixture
def category(mediator):
    return mediator.create(Category, {"name": "Food", "slug": "food"})


@pytest.fixture
def products(mediator, category):
    """Create three products priced 10, 20 and 30."""
    return [
        mediator.create(
            Product,
            {
                "name": f"Product {price}",
                "slug": f"product-{price}",
                "price": price,
                "stock": price // 10,
                "category_id": category.id,
            },
        )
        for price in (10, 20, 30)
    ]


def raw_state(session, product_id):
    """Read deletion markers straight from the table."""
    return session.execute(
        select(Product.slug, Product.deleted_at, Product.is_active).where(
            Product.id == product_id
        )
    ).one()


class TestDeleteInterceptor:
    """Test single record deletes."""

    def test_delete_hides_record(self, mediator, products):
        """Test a deleted record disappears from ordinary reads."""
        target = products[0]
        mediator.delete(Product, {"id": target.id})

        assert mediator.find_unique(Product, {"id": target.id}) is None
        assert mediator.find_first(Product, {"slug": "product-10-deleted-1704164645"}) is None
        assert target.id not in [p.id for p in mediator.find_many(Product)]
        assert mediator.count(Product) == 2

    def test_delete_preserves_row(self, db_session, mediator, products):
        """Test the row stays in the store with its markers set."""
        mediator.delete(Product, {"id": products[0].id})

        slug, deleted_at, is_active = raw_state(db_session, products[0].id)
        assert deleted_at is not None
        assert is_active is False
        assert slug == "product-10-deleted-1704164645"

    def test_include_deleted_finds_record(self, mediator, products):
        mediator.delete(Product, {"id": products[0].id})

        record = mediator.find_unique(Product, {"id": products[0].id}, include_deleted=True)

        assert record is not None
        assert record.is_deleted
        assert mediator.count(Product, include_deleted=True) == 3

    def test_delete_frees_slug(self, mediator, products):
        """Test a new record can take the slug of a deleted one."""
        mediator.delete(Product, {"slug": "product-10"})

        replacement = mediator.create(
            Product, {"name": "New", "slug": "product-10", "price": 1}
        )

        assert replacement.slug == "product-10"

    def test_delete_returns_record(self, mediator, products):
        record = mediator.delete(Product, {"id": products[1].id})

        assert record.id == products[1].id
        assert record.is_active is False

    def test_delete_missing_record(self, mediator, products):
        with pytest.raises(RecordNotFoundError):
            mediator.delete(Product, {"id": 12345})

    def test_delete_twice_reports_not_found(self, mediator, products):
        """Test an already deleted record is not found by a second delete."""
        mediator.delete(Product, {"id": products[0].id})

        with pytest.raises(RecordNotFoundError):
            mediator.delete(Product, {"id": products[0].id})

    def test_delete_with_expression_filter(self, mediator, products):
        mediator.delete(Product, [Product.price == 20])

        assert mediator.find_unique(Product, {"slug": "product-20"}) is None

    def test_ordinary_model_is_removed(self, db_session, mediator):
        """Test records without soft delete support are deleted for real."""
        order = mediator.create(Order, {"total": 12.5})

        mediator.delete(Order, {"id": order.id})

        assert db_session.execute(select(Order)).all() == []

    def test_ordinary_model_missing(self, mediator):
        with pytest.raises(RecordNotFoundError):
            mediator.delete(Order, {"id": 1})

    def test_clock_is_used(self, db_session, products):
        """Test deletion timestamps come from the injected clock."""
        when = datetime(2030, 6, 1, tzinfo=timezone.utc)
        mediator = SoftDeleteMediator(db_session, clock=lambda: when)

        record = mediator.delete(Product, {"id": products[0].id})

        assert record.slug == f"product-10-deleted-{int(when.timestamp())}"

    def test_same_second_redelete_conflicts(self, mediator, products):
        """Test a slug deleted twice within one second collides in the store."""
        mediator.delete(Product, {"slug": "product-10"})
        mediator.create(Product, {"name": "Again", "slug": "product-10", "price": 1})

        with pytest.raises(IntegrityError):
            mediator.delete(Product, {"slug": "product-10"})


class TestBulkDeleteInterceptor:
    """Test multi record deletes."""

    def test_delete_many_hides_records(self, mediator, products):
        count = mediator.delete_many(Product, [Product.price >= 20])

        assert count == 2
        assert [p.slug for p in mediator.find_many(Product)] == ["product-10"]

    def test_delete_many_keeps_slugs(self, db_session, mediator, products):
        """Test bulk deletes mark records without renaming slugs."""
        mediator.delete_many(Product, {"id": products[0].id})

        slug, deleted_at, is_active = raw_state(db_session, products[0].id)
        assert slug == "product-10"
        assert deleted_at is not None
        assert is_active is False

    def test_delete_many_everything(self, mediator, products):
        assert mediator.delete_many(Product) == 3
        assert mediator.count(Product) == 0

    def test_delete_many_ordinary_model(self, db_session, mediator):
        for total in (1, 2):
            mediator.create(Order, {"total": total})

        assert mediator.delete_many(Order, {"total": 1}) == 1
        assert mediator.count(Order) == 1


class TestReadFilter:
    """Test the read filter and its opt-out."""

    def test_deleted_at_key_is_overwritten(self, mediator, products):
        """Test a caller's deleted_at value never widens an ordinary read."""
        mediator.delete(Product, {"id": products[0].id})

        found = mediator.find_many(Product, {"deleted_at": [None], "slug": "product-20"})

        assert [p.slug for p in found] == ["product-20"]

    def test_expression_filter_cannot_reach_deleted(self, mediator, products):
        mediator.delete(Product, {"id": products[0].id})

        assert mediator.find_many(Product, [Product.deleted_at.is_not(None)]) == []

    def test_include_deleted_must_be_bool(self, mediator, products):
        """Test non-boolean opt-outs are rejected."""
        with pytest.raises(InvalidQueryError):
            mediator.find_many(Product, include_deleted="yes")
        with pytest.raises(InvalidQueryError):
            mediator.count(Product, include_deleted=1)

    def test_unknown_column(self, mediator):
        with pytest.raises(InvalidQueryError):
            mediator.find_many(Product, {"colour": "red"})

    def test_find_first_order(self, mediator, products):
        mediator.delete(Product, {"id": products[2].id})

        first = mediator.find_first(Product, order_by=["-price"])

        assert first.price == 20

    def test_find_many_pagination(self, mediator, products):
        page = mediator.find_many(Product, order_by=["price"], skip=1, take=1)

        assert [p.price for p in page] == [20]

    def test_find_unique_not_unique(self, mediator, products):
        from sqlalchemy.exc import MultipleResultsFound

        with pytest.raises(MultipleResultsFound):
            mediator.find_unique(Product, {"category_id": products[0].category_id})

    def test_reads_reflect_store(self, db_session, mediator, products):
        """Test a bulk delete is visible to records already in the session."""
        mediator.delete_many(Product, {"id": products[0].id})

        record = mediator.find_unique(Product, {"id": products[0].id}, include_deleted=True)

        assert record.is_deleted


class TestAggregates:
    """Test count, aggregate and group_by."""

    def test_aggregate_excludes_deleted(self, mediator, products):
        mediator.delete(Product, {"id": products[2].id})

        result = mediator.aggregate(
            Product, {"sum": ["price"], "max": ["price"], "count": ["id"]}
        )

        assert result == {"sum": {"price": 30}, "max": {"price": 20}, "count": {"id": 2}}

    def test_aggregate_include_deleted(self, mediator, products):
        mediator.delete(Product, {"id": products[2].id})

        result = mediator.aggregate(Product, {"sum": ["price"]}, include_deleted=True)

        assert result["sum"]["price"] == 60

    def test_aggregate_with_filter(self, mediator, products):
        result = mediator.aggregate(Product, {"avg": ["price"]}, [Product.price > 10])

        assert result["avg"]["price"] == 25

    def test_unknown_aggregate(self, mediator, products):
        with pytest.raises(InvalidQueryError):
            mediator.aggregate(Product, {"median": ["price"]})

    def test_group_by(self, mediator, category, products):
        """Test groups only count visible records."""
        other = mediator.create(Category, {"name": "Drinks", "slug": "drinks"})
        mediator.update(Product, {"id": products[0].id}, {"category_id": other.id})
        mediator.delete(Product, {"id": products[1].id})

        groups = mediator.group_by(
            Product,
            ["category_id"],
            {"count": ["id"], "sum": ["stock"]},
            order_by=["category_id"],
        )

        assert groups == [
            {"category_id": category.id, "count": {"id": 1}, "sum": {"stock": 3}},
            {"category_id": other.id, "count": {"id": 1}, "sum": {"stock": 1}},
        ]

    @pytest.mark.parametrize("functions", [{}, {"sum": []}])
    def test_aggregate_needs_functions(self, mediator, products, functions):
        with pytest.raises(InvalidQueryError):
            mediator.aggregate(Product, functions)

    def test_group_by_needs_columns(self, mediator):
        with pytest.raises(InvalidQueryError):
            mediator.group_by(Product, [])

    def test_count_related_excludes_deleted(self, mediator, category, products):
        """Test relation counts agree with what expansions show."""
        mediator.delete(Product, {"id": products[0].id})

        assert mediator.count_related(category, "products") == {"products": 2}
        assert mediator.count_related(category, "products", include_deleted=True) == {
            "products": 3
        }

    def test_count_related_ordinary_relation(self, mediator, products):
        order = mediator.create(Order, {"total": 10})
        mediator.create(
            OrderItem,
            {"order_id": order.id, "product_id": products[0].id, "price": 10},
        )

        assert mediator.count_related(products[0], "order_items") == {"order_items": 1}

    def test_count_related_requires_collection(self, mediator, products):
        from storefront_toolkit.soft_delete import InvalidExpansionError

        with pytest.raises(InvalidExpansionError):
            mediator.count_related(products[0], "category")


class TestWrites:
    """Test pass-through writes."""

    def test_create_duplicate_slug(self, mediator, products):
        with pytest.raises(IntegrityError):
            mediator.create(Product, {"name": "Dup", "slug": "product-10", "price": 1})

    def test_create_unknown_attribute(self, mediator):
        with pytest.raises(InvalidQueryError):
            mediator.create(Product, {"name": "x", "slug": "x", "price": 1, "colour": "red"})

    def test_update(self, mediator, products):
        record = mediator.update(Product, {"id": products[0].id}, {"stock": 99})

        assert record.stock == 99

    def test_update_reaches_deleted_records(self, mediator, products):
        """Test the update path can still address soft-deleted records."""
        mediator.delete(Product, {"id": products[0].id})

        record = mediator.update(Product, {"id": products[0].id}, {"stock": 7})

        assert record.stock == 7
        assert record.is_deleted

    def test_update_missing(self, mediator):
        with pytest.raises(RecordNotFoundError):
            mediator.update(Product, {"id": 404}, {"stock": 1})

    def test_update_many(self, mediator, products):
        count = mediator.update_many(Product, [Product.price < 30], {"status": "published"})

        assert count == 2
        assert mediator.count(Product, {"status": "published"}) == 2

    def test_clearing_deleted_at_reactivates(self, db_session, mediator, products):
        """Test deletion markers are written together on update."""
        mediator.delete(Product, {"id": products[0].id})

        mediator.update(Product, {"id": products[0].id}, {"deleted_at": None})

        _, deleted_at, is_active = raw_state(db_session, products[0].id)
        assert deleted_at is None
        assert is_active is True

    def test_setting_deleted_at_deactivates(self, db_session, mediator, products, now):
        mediator.update(Product, {"id": products[0].id}, {"deleted_at": now})

        _, deleted_at, is_active = raw_state(db_session, products[0].id)
        assert deleted_at is not None
        assert is_active is False

    def test_contradicting_markers_rejected(self, mediator, products, now):
        with pytest.raises(InvalidQueryError):
            mediator.update(
                Product, {"id": products[0].id}, {"deleted_at": now, "is_active": True}
            )

    def test_activating_deleted_record_rejected(self, mediator, products):
        """Test a deleted record cannot be activated without clearing deleted_at."""
        mediator.delete(Product, {"id": products[0].id})

        with pytest.raises(InvalidQueryError):
            mediator.update(Product, {"id": products[0].id}, {"is_active": True})

    def test_deactivating_live_record(self, mediator, products):
        record = mediator.update(Product, {"id": products[0].id}, {"is_active": False})

        assert record.is_active is False
        assert record.deleted_at is None

    def test_update_many_writes_markers_together(self, db_session, mediator, products):
        mediator.delete_many(Product)

        count = mediator.update_many(Product, None, {"deleted_at": None})

        assert count == 3
        for product in products:
            _, deleted_at, is_active = raw_state(db_session, product.id)
            assert deleted_at is None
            assert is_active is True

    def test_update_many_cannot_activate_alone(self, mediator, products):
        with pytest.raises(InvalidQueryError):
            mediator.update_many(Product, None, {"is_active": True})
