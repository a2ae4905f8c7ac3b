"""
Tests for the dispute lifecycle.
"""

from decimal import Decimal

import pytest

from settlement.errors import InvalidState, ValidationFailed
from settlement.extensions import db
from settlement.models import AuditLog, Order, Product
from settlement.services import disputes
from settlement.services.balances import ledger_sum


def _dispute_event(make_event, order, event_type, status=None, dispute_id="dp_1", amount=5000):
    obj = {
        "object": "dispute",
        "id": dispute_id,
        "charge": order.processor_charge_id,
        "amount": amount,
        "reason": "product_not_received",
    }
    if status:
        obj["status"] = status
    return make_event(event_type, obj)


@pytest.fixture()
def shipped_order(order_factory, product_factory, seller, fund_seller):
    """SHIPPED order with a charge id, seller holding 200.00 available."""
    product = product_factory(seller, stock=4)
    order = order_factory(seller, items=[(product, 2)], status="SHIPPED", processor_charge_id="ch_disputed")
    fund_seller(seller, available=Decimal("200.00"))
    return order, product


@pytest.mark.integration
class TestDisputeLost:
    """Tests for the lost-dispute scenario."""

    def test_open_then_lose(self, send_event, make_event, shipped_order, seller, balance_of):
        """Test freeze 50.00 then forfeit it, refund the order and restock."""
        order, product = shipped_order

        send_event(_dispute_event(make_event, order, "charge.dispute.created"))

        bal = balance_of(seller)
        assert bal.available_balance == Decimal("150.00")
        assert bal.pending_balance == Decimal("50.00")
        order = db.session.get(Order, order.id)
        assert order.status == "DISPUTE_OPENED"
        assert order.payment_status == "paid"
        assert order.dispute_status == "opened"
        assert order.dispute_amount == Decimal("50.00")
        assert order.dispute_reason == "product_not_received"
        assert order.dispute_opened_at is not None

        send_event(_dispute_event(make_event, order, "charge.dispute.closed", status="lost"))

        bal = balance_of(seller)
        assert bal.pending_balance == Decimal("0.00")
        assert bal.available_balance == Decimal("150.00")
        order = db.session.get(Order, order.id)
        assert order.status == "REFUNDED"
        assert order.payment_status == "refunded"
        assert order.dispute_result == "lost"
        assert order.refund_amount == Decimal("50.00")
        assert order.dispute_resolved_at is not None
        assert db.session.get(Product, product.id).stock_quantity == 6


@pytest.mark.integration
class TestDisputeWon:
    """Tests for the won-dispute path."""

    @pytest.mark.parametrize("status", ["won", "warning_closed"])
    def test_open_then_win(self, send_event, make_event, shipped_order, seller, balance_of, status):
        """Test the frozen amount returns to available and the order completes."""
        order, product = shipped_order
        send_event(_dispute_event(make_event, order, "charge.dispute.created"))
        send_event(_dispute_event(make_event, order, "charge.dispute.closed", status=status))

        bal = balance_of(seller)
        assert bal.available_balance == Decimal("200.00")
        assert bal.pending_balance == Decimal("0.00")
        order = db.session.get(Order, order.id)
        assert order.status == "COMPLETED"
        assert order.dispute_result == "won"
        assert db.session.get(Product, product.id).stock_quantity == 4

    def test_win_after_floored_freeze_restores_exact_balance(
        self, send_event, make_event, order_factory, product_factory, seller, fund_seller, balance_of
    ):
        """Test a freeze that hit the floor releases only what it froze."""
        product = product_factory(seller, stock=4)
        order = order_factory(seller, items=[(product, 2)], status="SHIPPED", processor_charge_id="ch_short")
        fund_seller(seller, available=Decimal("10.00"))

        send_event(_dispute_event(make_event, order, "charge.dispute.created", amount=5000))

        bal = balance_of(seller)
        assert bal.available_balance == Decimal("0.00")
        assert bal.pending_balance == Decimal("10.00")
        assert db.session.get(Order, order.id).dispute_frozen_amount == Decimal("10.00")

        send_event(_dispute_event(make_event, order, "charge.dispute.closed", status="won"))

        bal = balance_of(seller)
        assert bal.available_balance == Decimal("10.00")
        assert bal.pending_balance == Decimal("0.00")
        assert ledger_sum(seller.id) == Decimal("10.00")
        assert AuditLog.query.filter_by(action="balance_floor_applied").count() == 1

    def test_loss_after_floored_freeze_forfeits_only_frozen(
        self, send_event, make_event, order_factory, product_factory, seller, fund_seller, balance_of
    ):
        """Test a lost dispute takes only the frozen amount out of pending."""
        product = product_factory(seller, stock=4)
        order = order_factory(seller, items=[(product, 2)], status="SHIPPED", processor_charge_id="ch_short")
        fund_seller(seller, available=Decimal("10.00"))

        send_event(_dispute_event(make_event, order, "charge.dispute.created", amount=5000))
        send_event(_dispute_event(make_event, order, "charge.dispute.closed", status="lost"))

        bal = balance_of(seller)
        assert bal.available_balance == Decimal("0.00")
        assert bal.pending_balance == Decimal("0.00")
        assert ledger_sum(seller.id) == Decimal("0.00")
        order = db.session.get(Order, order.id)
        assert order.refund_amount == Decimal("50.00")
        assert AuditLog.query.filter_by(action="balance_floor_applied").count() == 1


@pytest.mark.integration
class TestDisputeGuards:
    """Tests for no-op and rejection rules."""

    def test_second_open_is_noop(self, send_event, make_event, shipped_order, seller, balance_of):
        """Test a second dispute-opened event freezes nothing more."""
        order, _ = shipped_order
        send_event(_dispute_event(make_event, order, "charge.dispute.created"))
        response = send_event(_dispute_event(make_event, order, "charge.dispute.created", dispute_id="dp_2"))

        assert response.get_json()["outcome"] == "noop"
        bal = balance_of(seller)
        assert bal.available_balance == Decimal("150.00")
        assert bal.pending_balance == Decimal("50.00")

    def test_close_before_open_is_noop(self, send_event, make_event, shipped_order, seller, balance_of):
        """Test a closed event overtaking its opened event."""
        order, _ = shipped_order
        response = send_event(_dispute_event(make_event, order, "charge.dispute.closed", status="lost"))

        assert response.status_code == 200
        assert response.get_json()["outcome"] == "noop"
        assert db.session.get(Order, order.id).status == "SHIPPED"
        assert balance_of(seller).available_balance == Decimal("200.00")

    def test_other_close_status_is_ignored(self, send_event, make_event, shipped_order):
        """Test a closed status that is neither won nor lost."""
        order, _ = shipped_order
        send_event(_dispute_event(make_event, order, "charge.dispute.created"))
        response = send_event(_dispute_event(make_event, order, "charge.dispute.closed", status="under_review"))

        assert response.get_json()["outcome"] == "ignored"
        assert db.session.get(Order, order.id).status == "DISPUTE_OPENED"

    def test_late_dispute_on_completed_order_is_rejected(
        self, send_event, make_event, order_factory, seller, fund_seller, balance_of
    ):
        """Test a dispute for a completed order is logged as an anomaly."""
        order = order_factory(seller, status="COMPLETED", processor_charge_id="ch_done")
        fund_seller(seller, available=Decimal("100.00"))

        response = send_event(_dispute_event(make_event, order, "charge.dispute.created"))

        assert response.status_code == 200
        assert response.get_json()["outcome"] == "noop"
        assert db.session.get(Order, order.id).status == "COMPLETED"
        assert balance_of(seller).available_balance == Decimal("100.00")
        anomaly = AuditLog.query.filter_by(action="late_dispute_rejected").one()
        assert anomaly.severity == "warning"

    def test_dispute_on_pending_order_is_noop(self, send_event, make_event, order_factory, seller):
        """Test an unpaid order cannot be disputed."""
        order = order_factory(seller, processor_charge_id="ch_pending")
        response = send_event(_dispute_event(make_event, order, "charge.dispute.created"))
        assert response.get_json()["outcome"] == "noop"
        assert db.session.get(Order, order.id).status == "PENDING"

    def test_replayed_open_after_resolution(self, send_event, make_event, shipped_order, seller, balance_of):
        """Test the original opened event redelivered after a win."""
        order, _ = shipped_order
        send_event(_dispute_event(make_event, order, "charge.dispute.created"))
        send_event(_dispute_event(make_event, order, "charge.dispute.closed", status="won"))
        send_event(_dispute_event(make_event, order, "charge.dispute.created"))

        assert db.session.get(Order, order.id).status == "COMPLETED"
        assert balance_of(seller).available_balance == Decimal("200.00")
        assert AuditLog.query.filter_by(action="late_dispute_rejected").count() == 0


@pytest.mark.integration
class TestManualResolution:
    """Tests for the admin dispute override."""

    def test_admin_resolves_open_dispute(self, send_event, make_event, shipped_order, admin_user, seller, balance_of):
        """Test an admin closes a dispute as won."""
        order, _ = shipped_order
        send_event(_dispute_event(make_event, order, "charge.dispute.created"))

        result = disputes.resolve_dispute_manually(order.id, admin_user.id, "won")

        assert result["status"] == "COMPLETED"
        assert balance_of(seller).available_balance == Decimal("200.00")
        row = AuditLog.query.filter_by(action="dispute_manual_resolution").one()
        assert row.actor_user_id == admin_user.id

    def test_no_open_dispute_is_reported(self, shipped_order, admin_user):
        """Test the operator is told when there is nothing to resolve."""
        order, _ = shipped_order
        with pytest.raises(InvalidState):
            disputes.resolve_dispute_manually(order.id, admin_user.id, "lost")

    def test_bad_outcome(self, shipped_order, admin_user):
        """Test only won and lost are accepted."""
        order, _ = shipped_order
        with pytest.raises(ValidationFailed):
            disputes.resolve_dispute_manually(order.id, admin_user.id, "maybe")

    def test_http_route(self, api, send_event, make_event, shipped_order, admin_user):
        """Test POST /api/admin/orders/<id>/dispute."""
        order, _ = shipped_order
        send_event(_dispute_event(make_event, order, "charge.dispute.created"))

        response = api.post(f"/api/admin/orders/{order.id}/dispute", user=admin_user, json={"outcome": "lost"})

        assert response.status_code == 200
        assert response.get_json()["order"]["status"] == "REFUNDED"

    def test_http_route_missing_order(self, api, admin_user):
        """Test a 404 for an unknown order."""
        response = api.post("/api/admin/orders/999/dispute", user=admin_user, json={"outcome": "won"})
        assert response.status_code == 404
        assert response.get_json()["error"] == "NOT_FOUND"
