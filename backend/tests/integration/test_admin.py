"""
Tests for administrative queries and actions.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from settlement.errors import InvalidState, NotFound, ValidationFailed
from settlement.extensions import db
from settlement.models import (
    AuditLog,
    Product,
    Seller,
    SellerApplication,
    SellerBalance,
    SellerPayout,
    User,
    WithdrawalRequest,
)
from settlement.services import admin
from settlement.services.order_machine import OrderStatus


@pytest.mark.integration
class TestPlatformFigures:
    """Tests for stats and revenue."""

    def test_stats(self, admin_user, seller, order_factory, product_factory):
        """Test counters across users, orders and queues."""
        order_factory(seller, status=OrderStatus.PAID)
        order_factory(seller, status=OrderStatus.COMPLETED)
        order_factory(seller)
        product_factory(seller, moderation_status="pending")
        db.session.add(WithdrawalRequest(seller_id=seller.id, amount=Decimal("5.00")))
        db.session.commit()

        stats = admin.get_platform_stats(admin_user.id)

        assert stats["totalSellers"] == 1
        assert stats["totalOrders"] == 3
        assert stats["totalRevenue"] == 200.0
        assert stats["pendingProducts"] == 1
        assert stats["pendingWithdrawals"] == 1
        assert stats["openDisputes"] == 0

    def test_revenue(self, admin_user, seller, order_factory):
        """Test daily aggregation and average order value."""
        order_factory(seller, status=OrderStatus.PAID, total_amount=Decimal("100.00"), platform_fee=Decimal("15.00"))
        order_factory(seller, status=OrderStatus.SHIPPED, total_amount=Decimal("50.00"), platform_fee=Decimal("7.50"))
        order_factory(seller, status=OrderStatus.PAID, created_at=datetime.utcnow() - timedelta(days=60))
        order_factory(seller, status=OrderStatus.REFUNDED)

        report = admin.get_platform_revenue(admin_user.id, 30)

        assert report["periodDays"] == 30
        assert report["totalOrders"] == 2
        assert report["totalRevenue"] == 150.0
        assert report["totalPlatformFees"] == 22.5
        assert report["averageOrderValue"] == 75.0
        assert sum(day["orders"] for day in report["daily"]) == 2

    def test_revenue_period_must_be_positive(self, admin_user):
        """Test a zero period is rejected."""
        with pytest.raises(ValidationFailed):
            admin.get_platform_revenue(admin_user.id, 0)

    def test_revenue_route(self, api, admin_user):
        """Test the period query argument."""
        response = api.get("/api/admin/revenue?period=7", user=admin_user)
        assert response.status_code == 200
        assert response.get_json()["periodDays"] == 7

        response = api.get("/api/admin/revenue?period=week", user=admin_user)
        assert response.status_code == 400


@pytest.mark.integration
class TestSellerApplications:
    """Tests for review_seller_application()."""

    @pytest.fixture()
    def application(self, user_factory):
        user = user_factory(role="buyer")
        row = SellerApplication(user_id=user.id, shop_name="Vintage Finds")
        db.session.add(row)
        db.session.commit()
        return row

    def test_approve_creates_seller(self, admin_user, application):
        """Test approval creates the seller, an empty balance and the seller role."""
        result = admin.review_seller_application(admin_user.id, application.id, "approve")

        seller = Seller.query.filter_by(user_id=application.user_id).one()
        assert result["seller_id"] == seller.id
        assert seller.shop_name == "Vintage Finds"
        assert SellerBalance.query.filter_by(seller_id=seller.id).count() == 1
        assert db.session.get(User, application.user_id).role == "seller"
        assert AuditLog.query.filter_by(action="seller_application_approved").count() == 1

    def test_reject_records_reason(self, admin_user, application):
        """Test rejection keeps the user a buyer."""
        result = admin.review_seller_application(admin_user.id, application.id, "reject", reason="incomplete")

        assert result["application"]["status"] == "rejected"
        assert result["application"]["rejection_reason"] == "incomplete"
        assert Seller.query.count() == 0
        assert db.session.get(User, application.user_id).role == "buyer"

    def test_second_review_invalid(self, admin_user, application):
        """Test a reviewed application cannot be reviewed again."""
        admin.review_seller_application(admin_user.id, application.id, "reject")
        with pytest.raises(InvalidState):
            admin.review_seller_application(admin_user.id, application.id, "approve")


@pytest.mark.integration
class TestModeration:
    """Tests for moderate_product() and user suspension."""

    def test_flag_product(self, admin_user, seller, product_factory):
        """Test a flag is recorded with notes."""
        product = product_factory(seller)
        result = admin.moderate_product(admin_user.id, product.id, "flag", notes="counterfeit?")

        assert result["moderation_status"] == "flagged"
        assert db.session.get(Product, product.id).moderated_by == admin_user.id
        assert AuditLog.query.filter_by(action="product_flagged", target_id=str(product.id)).count() == 1

    def test_moderate_missing_product(self, admin_user):
        """Test NOT_FOUND for an admin."""
        with pytest.raises(NotFound):
            admin.moderate_product(admin_user.id, 424242, "approve")

    def test_moderate_route_unknown_action(self, api, admin_user, seller, product_factory):
        """Test only approve, reject and flag are accepted."""
        product = product_factory(seller)
        response = api.post(f"/api/admin/products/{product.id}/moderate", user=admin_user, json={"action": "delete"})
        assert response.status_code == 400

    def test_cannot_suspend_self(self, admin_user):
        """Test an admin cannot lock themselves out."""
        with pytest.raises(InvalidState):
            admin.suspend_user(admin_user.id, admin_user.id)

    def test_suspend_seller(self, admin_user, seller):
        """Test suspension bans the user and suspends the shop."""
        result = admin.suspend_user(admin_user.id, seller.user_id, reason="fraud")

        assert result["is_banned"] is True
        assert db.session.get(Seller, seller.id).status == "suspended"

        admin.unsuspend_user(admin_user.id, seller.user_id)
        assert db.session.get(User, seller.user_id).is_banned is False
        assert db.session.get(Seller, seller.id).status == "approved"

    def test_suspended_token_is_anonymous(self, api, admin_user, user_factory):
        """Test a suspended admin's token no longer authenticates."""
        other_admin = user_factory(role="admin")
        assert api.get("/api/admin/stats", user=other_admin).status_code == 200

        admin.suspend_user(admin_user.id, other_admin.id)

        assert api.get("/api/admin/stats", user=other_admin).status_code == 403

    def test_user_activity(self, admin_user, buyer, seller, order_factory):
        """Test purchases, spend and admin actions for one user."""
        order_factory(seller, status=OrderStatus.PAID)
        order_factory(seller)
        admin.suspend_user(admin_user.id, buyer.id, reason="chargebacks")

        activity = admin.get_user_activity(admin_user.id, buyer.id)

        assert len(activity["orders"]) == 2
        assert activity["totalSpent"] == 100.0
        assert [a["action"] for a in activity["adminActions"]] == ["user_suspended"]
        assert activity["seller"] is None


@pytest.mark.integration
class TestAuditAndReconcileRoutes:
    """Tests for the audit listing and the balance reconciliation trigger."""

    def test_audit_filter(self, api, admin_user, seller, product_factory):
        """Test filtering by action."""
        product = product_factory(seller)
        admin.moderate_product(admin_user.id, product.id, "reject")
        admin.moderate_product(admin_user.id, product.id, "approve")

        response = api.get("/api/admin/audit?action=product_rejected", user=admin_user)

        items = response.get_json()["items"]
        assert [i["action"] for i in items] == ["product_rejected"]
        assert items[0]["actor"] == str(admin_user.id)

    def test_reconcile_detects_tampering(self, api, admin_user, seller, fund_seller):
        """Test a balance edited outside the ledger is reported."""
        fund_seller(seller, available=Decimal("30.00"))
        bal = SellerBalance.query.filter_by(seller_id=seller.id).one()
        bal.available_balance = Decimal("80.00")
        db.session.commit()

        response = api.post("/api/admin/balances/reconcile", user=admin_user)

        assert response.status_code == 200
        assert response.get_json()["anomalies"] == 1
        anomalies = api.get("/api/admin/balances/anomalies", user=admin_user).get_json()["items"]
        assert anomalies[0]["meta"]["issues"] == ["ledger_mismatch"]
        assert anomalies[0]["meta"]["ledger_sum"] == "30.00"


@pytest.mark.integration
class TestAdminReads:
    """Tests for disputed orders, fee summaries and payout history."""

    def test_disputed_orders(self, api, admin_user, seller, order_factory):
        """Test only orders with an open dispute are listed, newest first."""
        older = order_factory(
            seller, status=OrderStatus.DISPUTE_OPENED, created_at=datetime.utcnow() - timedelta(days=2)
        )
        newer = order_factory(seller, status=OrderStatus.DISPUTE_OPENED)
        order_factory(seller, status=OrderStatus.PAID)
        order_factory(seller, status=OrderStatus.REFUNDED)

        rows = admin.get_disputed_orders(admin_user.id)
        assert [r["id"] for r in rows] == [newer.id, older.id]

        response = api.get("/api/admin/disputes", user=admin_user)
        assert response.status_code == 200
        assert [r["id"] for r in response.get_json()["items"]] == [newer.id, older.id]

    def test_fees_summary(self, admin_user, seller, order_factory):
        """Test fees and revenue over paid orders in the window."""
        now = datetime.utcnow()
        order_factory(seller, status=OrderStatus.PAID, total_amount=Decimal("100.00"), platform_fee=Decimal("15.00"))
        order_factory(seller, status=OrderStatus.COMPLETED, total_amount=Decimal("50.00"), platform_fee=Decimal("5.00"))
        order_factory(seller, status=OrderStatus.PENDING, platform_fee=Decimal("99.00"))
        order_factory(seller, status=OrderStatus.PAID, created_at=now - timedelta(days=40))

        summary = admin.get_platform_fees_summary(admin_user.id, now - timedelta(days=7), now + timedelta(minutes=1))

        assert summary["orderCount"] == 2
        assert summary["totalFees"] == 20.0
        assert summary["totalOrderRevenue"] == 150.0
        assert summary["feePercentage"] == 13.33

        everything = admin.get_platform_fees_summary(admin_user.id)
        assert everything["orderCount"] == 3
        assert everything["periodStart"] is None

    def test_fees_summary_empty(self, admin_user):
        """Test an empty window reports zeros."""
        summary = admin.get_platform_fees_summary(admin_user.id)
        assert summary["orderCount"] == 0
        assert summary["totalFees"] == 0.0
        assert summary["feePercentage"] == 0.0

    def test_fees_summary_rejects_inverted_range(self, admin_user):
        """Test start after end is rejected."""
        now = datetime.utcnow()
        with pytest.raises(ValidationFailed):
            admin.get_platform_fees_summary(admin_user.id, now, now - timedelta(days=1))

    def test_fees_route(self, api, admin_user, seller, order_factory):
        """Test date query arguments; a bare end date covers the whole day."""
        order_factory(seller, status=OrderStatus.PAID)
        today = datetime.utcnow().date().isoformat()

        response = api.get(f"/api/admin/fees?start={today}&end={today}", user=admin_user)
        assert response.status_code == 200
        assert response.get_json()["orderCount"] == 1

        response = api.get("/api/admin/fees?start=yesterday", user=admin_user)
        assert response.status_code == 400

    def test_seller_payout_history(self, api, admin_user, seller, seller_factory, order_factory):
        """Test totals split paid from not-yet-paid payouts."""
        other = seller_factory()
        rows = [
            (seller, "40.00", "paid"),
            (seller, "25.00", "pending"),
            (seller, "10.00", "processing"),
            (seller, "5.00", "reversed"),
            (other, "99.00", "paid"),
        ]
        for owner, amount, status in rows:
            order = order_factory(owner)
            db.session.add(SellerPayout(seller_id=owner.id, order_id=order.id, amount=Decimal(amount), status=status))
        db.session.commit()

        history = admin.get_seller_payout_history(admin_user.id, seller.id)
        assert len(history["payouts"]) == 4
        assert history["totalPaid"] == 40.0
        assert history["totalPending"] == 35.0

        response = api.get("/api/admin/payouts", user=admin_user)
        assert response.status_code == 200
        assert response.get_json()["totalPaid"] == 139.0

        response = api.get(f"/api/admin/sellers/{seller.id}/payouts", user=admin_user)
        assert len(response.get_json()["payouts"]) == 4

    def test_payout_history_unknown_seller(self, api, admin_user):
        """Test an unknown seller is NOT_FOUND."""
        with pytest.raises(NotFound):
            admin.get_seller_payout_history(admin_user.id, 424242)
        assert api.get("/api/admin/sellers/424242/payouts", user=admin_user).status_code == 404
