"""
Pytest configuration and fixtures for the settlement backend tests.
"""

import json
import time
import uuid
from decimal import Decimal

import pytest
from flask import g

from settlement import create_app
from settlement.extensions import db

WEBHOOK_SECRET = "whsec_test_secret"


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture()
def app():
    """Application bound to a fresh in-memory database."""
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "AUTO_CREATE_TABLES": False,
            "SECRET_KEY": "test-secret-key-0123456789",
            "PROCESSOR_WEBHOOK_SECRET": WEBHOOK_SECRET,
            "SHIPPING_WEBHOOK_SECRET": "",
            "RESEND_API_KEY": "",
        }
    )
    with app.app_context():
        from settlement import models  # noqa: F401

        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def reconciler(app):
    return app.extensions["settlement_reconciler"]


@pytest.fixture()
def api(client):
    """Test client wrapper that authenticates as ``user`` for one request."""
    from settlement.utils.jwt_utils import create_access_token

    class Api:
        def _headers(self, user):
            # the app context outlives requests in tests; drop the cached login
            g.pop("_login_user", None)
            if user is None:
                return {}
            return {"Authorization": f"Bearer {create_access_token(user.id)}"}

        def get(self, path, user=None, **kwargs):
            return client.get(path, headers=self._headers(user), **kwargs)

        def post(self, path, user=None, json=None, **kwargs):
            return client.post(path, headers=self._headers(user), json=json, **kwargs)

    return Api()


# ============================================================================
# User Fixtures
# ============================================================================


@pytest.fixture()
def user_factory(app):
    """Factory for creating test users."""
    from settlement.models import User

    def create_user(role="buyer", **kwargs):
        name = kwargs.pop("name", None) or f"user_{uuid.uuid4().hex[:8]}"
        user = User(name=name, email=f"{name}@example.com", role=role, **kwargs)
        db.session.add(user)
        db.session.commit()
        return user

    return create_user


@pytest.fixture()
def buyer(user_factory):
    return user_factory(role="buyer")


@pytest.fixture()
def admin_user(user_factory):
    """An admin by role flag."""
    return user_factory(role="admin")


# ============================================================================
# Seller / Catalog Fixtures
# ============================================================================


@pytest.fixture()
def seller_factory(user_factory):
    """Factory for creating sellers (with their user account)."""
    from settlement.models import Seller

    def create_seller(**kwargs):
        user = kwargs.pop("user", None) or user_factory(role="seller")
        seller = Seller(
            user_id=user.id,
            shop_name=kwargs.pop("shop_name", f"Shop {user.name}"),
            status=kwargs.pop("status", "approved"),
            **kwargs,
        )
        db.session.add(seller)
        db.session.commit()
        return seller

    return create_seller


@pytest.fixture()
def seller(seller_factory):
    return seller_factory(processor_account_id="acct_seller_1")


@pytest.fixture()
def product_factory(app):
    from settlement.models import Product

    def create_product(seller, stock=10, price=Decimal("50.00"), **kwargs):
        product = Product(
            seller_id=seller.id,
            title=kwargs.pop("title", f"Product {uuid.uuid4().hex[:6]}"),
            price=price,
            stock_quantity=stock,
            moderation_status=kwargs.pop("moderation_status", "approved"),
            **kwargs,
        )
        db.session.add(product)
        db.session.commit()
        return product

    return create_product


@pytest.fixture()
def order_factory(buyer, product_factory):
    """Factory for orders with line items; defaults to 100.00 total, 15.00 fee."""
    from settlement.models import Order, OrderItem
    from settlement.services.order_machine import OrderStatus

    def create_order(seller, items=None, status=OrderStatus.PENDING, **kwargs):
        if items is None:
            items = [(product_factory(seller), 2)]
        order = Order(
            order_number=kwargs.pop("order_number", f"ORD-{uuid.uuid4().hex[:8].upper()}"),
            buyer_id=kwargs.pop("buyer_id", buyer.id),
            seller_id=seller.id,
            total_amount=kwargs.pop("total_amount", Decimal("100.00")),
            platform_fee=kwargs.pop("platform_fee", Decimal("15.00")),
            seller_earnings=kwargs.pop("seller_earnings", Decimal("85.00")),
            status=OrderStatus(status).value,
            **kwargs,
        )
        db.session.add(order)
        db.session.flush()
        for product, qty in items:
            db.session.add(
                OrderItem(order_id=order.id, product_id=product.id, quantity=qty, unit_price=product.price)
            )
        db.session.commit()
        return order

    return create_order


@pytest.fixture()
def fund_seller(app):
    """Put money on a seller's balance through the ledger."""
    from settlement.services import balances
    from settlement.services.balances import BalanceField

    def fund(seller, available=Decimal("0.00"), pending=Decimal("0.00")):
        if available:
            balances.credit(seller.id, BalanceField.AVAILABLE, available, description="test funding")
        if pending:
            balances.credit(seller.id, BalanceField.PENDING, pending, description="test funding")
        db.session.commit()
        return balances.get_balance(seller.id, lock=False)

    return fund


@pytest.fixture()
def balance_of(app):
    from settlement.models import SellerBalance

    def read(seller):
        db.session.expire_all()
        return SellerBalance.query.filter_by(seller_id=seller.id).first()

    return read


# ============================================================================
# Processor Event Fixtures
# ============================================================================


@pytest.fixture()
def make_event():
    """Build a processor event envelope."""

    def build(event_type, obj, event_id=None, account=None):
        payload = {
            "id": event_id or f"evt_{uuid.uuid4().hex[:16]}",
            "type": event_type,
            "created": int(time.time()),
            "data": {"object": obj},
        }
        if account:
            payload["account"] = account
        return payload

    return build


@pytest.fixture()
def send_event(client):
    """POST a correctly signed event to the processor webhook."""
    from settlement.utils.signatures import sign_payload

    def send(payload, secret=WEBHOOK_SECRET, signature=None):
        raw = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
        header = signature if signature is not None else sign_payload(secret, raw)
        return client.post(
            "/api/webhooks/processor",
            data=raw,
            headers={"Processor-Signature": header, "Content-Type": "application/json"},
        )

    return send


@pytest.fixture()
def payment_succeeded(make_event):
    """payment_intent.succeeded for ``order``; amounts in cents."""

    def build(order, amount=10000, fee=1500, event_id=None, intent_id=None):
        return make_event(
            "payment_intent.succeeded",
            {
                "object": "payment_intent",
                "id": intent_id or f"pi_{order.id}",
                "amount_received": amount,
                "application_fee_amount": fee,
                "latest_charge": f"ch_{order.id}",
                "metadata": {"order_id": str(order.id)},
            },
            event_id=event_id,
        )

    return build
