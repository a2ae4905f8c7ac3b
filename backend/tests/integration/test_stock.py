"""
Tests for stock restoration.
"""

import pytest

from settlement.extensions import db
from settlement.models import Product, StockRestoration
from settlement.services.stock import restore_stock


@pytest.mark.integration
class TestRestoreStock:
    """Tests for exactly-once stock restoration."""

    def test_restores_every_line_item(self, seller, product_factory, order_factory):
        """Test each product is incremented by its quantity."""
        a = product_factory(seller, stock=5)
        b = product_factory(seller, stock=0)
        order = order_factory(seller, items=[(a, 2), (b, 3)])

        assert restore_stock(order, "cancel") is True
        db.session.commit()

        assert db.session.get(Product, a.id).stock_quantity == 7
        assert db.session.get(Product, b.id).stock_quantity == 3
        assert order.stock_restored_at is not None
        assert StockRestoration.query.filter_by(order_id=order.id).one().units == 5

    def test_second_call_same_reason_is_noop(self, seller, product_factory, order_factory):
        """Test a repeated restoration does not double count."""
        p = product_factory(seller, stock=1)
        order = order_factory(seller, items=[(p, 4)])

        restore_stock(order, "cancel")
        db.session.commit()
        assert restore_stock(order, "cancel") is False
        db.session.commit()

        assert db.session.get(Product, p.id).stock_quantity == 5

    def test_other_reason_after_restore_is_noop(self, seller, product_factory, order_factory):
        """Test an order's stock comes back once whatever the reason."""
        p = product_factory(seller, stock=0)
        order = order_factory(seller, items=[(p, 1)])

        restore_stock(order, "return")
        db.session.commit()
        assert restore_stock(order, "cancel") is False

        assert db.session.get(Product, p.id).stock_quantity == 1

    def test_unknown_reason(self, seller, order_factory):
        """Test only return and cancel are accepted."""
        order = order_factory(seller)
        with pytest.raises(ValueError):
            restore_stock(order, "lost")
