"""
Tests for the admin authorization gate.
"""

from decimal import Decimal

import pytest

from settlement.errors import Forbidden
from settlement.extensions import db
from settlement.models import AdminUser, AuditLog, WithdrawalRequest
from settlement.services import admin, withdrawals
from settlement.services.admin import verify_admin


@pytest.mark.security
class TestVerifyAdmin:
    """Tests for admin resolution."""

    def test_role_flag_grants_admin(self, admin_user):
        """Test a user with role admin."""
        assert verify_admin(admin_user.id) == admin_user.id

    def test_registry_grants_admin(self, user_factory):
        """Test a registry member without the role flag."""
        user = user_factory(role="buyer")
        db.session.add(AdminUser(user_id=user.id))
        db.session.commit()
        assert verify_admin(user.id) == user.id

    def test_plain_user_is_forbidden(self, buyer):
        """Test a buyer is refused."""
        with pytest.raises(Forbidden):
            verify_admin(buyer.id)

    @pytest.mark.parametrize("user_id", [None, "abc", 999999])
    def test_unknown_or_missing_user(self, app, user_id):
        """Test anonymous and unknown callers."""
        with pytest.raises(Forbidden):
            verify_admin(user_id)

    def test_suspended_admin_is_forbidden(self, user_factory):
        """Test a banned admin account loses its rights."""
        user = user_factory(role="admin", is_banned=True)
        with pytest.raises(Forbidden):
            verify_admin(user.id)


@pytest.mark.security
class TestGateShortCircuits:
    """Tests that privileged operations do nothing before authorization."""

    def test_process_withdrawal_by_non_admin_touches_nothing(self, buyer, seller, fund_seller):
        """Test a refused caller leaves the request and audit log untouched."""
        fund_seller(seller, available=Decimal("100.00"))
        req = WithdrawalRequest(seller_id=seller.id, amount=Decimal("10.00"))
        db.session.add(req)
        db.session.commit()
        audit_rows = AuditLog.query.count()

        with pytest.raises(Forbidden):
            withdrawals.process_withdrawal(req.id, buyer.id, "approve")

        db.session.expire_all()
        assert db.session.get(WithdrawalRequest, req.id).status == "pending"
        assert AuditLog.query.count() == audit_rows

    def test_payout_history_of_missing_seller_checks_admin_first(self, buyer):
        """Test a non-admin asking about an unknown seller gets FORBIDDEN."""
        with pytest.raises(Forbidden):
            admin.get_seller_payout_history(buyer.id, 424242)

    def test_moderation_of_missing_product_checks_admin_first(self, buyer):
        """Test that a non-admin gets FORBIDDEN, not NOT_FOUND."""
        with pytest.raises(Forbidden):
            admin.moderate_product(buyer.id, 424242, "approve")

    @pytest.mark.parametrize(
        "method,path",
        [
            ("get", "/api/admin/withdrawals"),
            ("post", "/api/admin/withdrawals/1/process"),
            ("get", "/api/admin/stats"),
            ("get", "/api/admin/revenue"),
            ("get", "/api/admin/fees?start=bogus"),
            ("get", "/api/admin/payouts"),
            ("get", "/api/admin/sellers/999/payouts"),
            ("get", "/api/admin/disputes"),
            ("post", "/api/admin/products/1/moderate"),
            ("post", "/api/admin/users/1/suspend"),
            ("get", "/api/admin/users/1/activity"),
            ("post", "/api/admin/orders/1/dispute"),
            ("get", "/api/admin/audit"),
            ("post", "/api/admin/balances/reconcile"),
        ],
    )
    def test_admin_routes_require_admin(self, api, buyer, method, path):
        """Test every admin route refuses a non-admin."""
        response = getattr(api, method)(path, user=buyer)
        assert response.status_code == 403
        assert response.get_json()["error"] == "FORBIDDEN"

    def test_anonymous_caller_is_forbidden(self, api):
        """Test a request without a token."""
        response = api.get("/api/admin/stats")
        assert response.status_code == 403
