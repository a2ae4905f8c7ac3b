"""Administrative queries and actions.

Every public function starts with ``verify_admin`` and performs no other read
or write before it succeeds.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from flask import current_app
from sqlalchemy import func

from settlement.errors import Forbidden, NotFound, InvalidState, ValidationFailed
from settlement.extensions import db
from settlement.models import (
    AdminUser,
    AuditLog,
    Order,
    Product,
    Seller,
    SellerApplication,
    SellerBalance,
    SellerPayout,
    User,
    WithdrawalRequest,
)
from settlement.services.balances import ZERO, get_balance, to_money
from settlement.services.order_machine import PAID_STATES, OrderStatus
from settlement.utils import audit

_PAID_VALUES = [s.value for s in PAID_STATES]


def verify_admin(user_id: Optional[int]) -> int:
    if user_id is None:
        raise Forbidden("admin access required")
    try:
        uid = int(user_id)
    except (TypeError, ValueError):
        raise Forbidden("admin access required")
    if AdminUser.query.filter_by(user_id=uid).first():
        return uid
    user = db.session.get(User, uid)
    if user is not None and (user.role or "").lower() == "admin" and not user.is_banned:
        return uid
    current_app.logger.warning("admin check failed user=%s", uid)
    raise Forbidden("admin access required")


def is_admin(user_id: Optional[int]) -> bool:
    try:
        verify_admin(user_id)
        return True
    except Forbidden:
        return False


def get_platform_stats(admin_id: int) -> dict:
    verify_admin(admin_id)
    revenue = (
        db.session.query(func.coalesce(func.sum(Order.total_amount), 0))
        .filter(Order.status.in_(_PAID_VALUES))
        .scalar()
    )
    return {
        "totalUsers": User.query.count(),
        "totalSellers": Seller.query.count(),
        "totalOrders": Order.query.count(),
        "totalRevenue": float(to_money(revenue)),
        "activeProducts": Product.query.filter(Product.moderation_status == "approved", Product.stock_quantity > 0).count(),
        "pendingSellers": SellerApplication.query.filter_by(status="pending").count(),
        "pendingProducts": Product.query.filter_by(moderation_status="pending").count(),
        "pendingWithdrawals": WithdrawalRequest.query.filter_by(status="pending").count(),
        "openDisputes": Order.query.filter_by(dispute_status="opened").count(),
    }


def get_platform_revenue(admin_id: int, period_days: int = 30) -> dict:
    """Daily revenue, order count and platform fees over the last ``period_days``."""
    verify_admin(admin_id)
    if int(period_days) <= 0:
        raise ValidationFailed("period must be positive", period=period_days)

    start = datetime.utcnow() - timedelta(days=int(period_days))
    orders = (
        Order.query.filter(Order.status.in_(_PAID_VALUES), Order.created_at >= start)
        .order_by(Order.created_at.asc())
        .all()
    )

    daily = {}
    total_revenue = ZERO
    total_fees = ZERO
    for o in orders:
        day = o.created_at.strftime("%Y-%m-%d")
        row = daily.setdefault(day, {"date": day, "revenue": ZERO, "orders": 0, "platformFees": ZERO})
        row["revenue"] += to_money(o.total_amount)
        row["orders"] += 1
        row["platformFees"] += to_money(o.platform_fee)
        total_revenue += to_money(o.total_amount)
        total_fees += to_money(o.platform_fee)

    count = len(orders)
    average = to_money(total_revenue / count) if count else ZERO
    return {
        "periodDays": int(period_days),
        "daily": [
            {"date": r["date"], "revenue": float(r["revenue"]), "orders": r["orders"], "platformFees": float(r["platformFees"])}
            for r in daily.values()
        ],
        "totalRevenue": float(total_revenue),
        "totalOrders": count,
        "totalPlatformFees": float(total_fees),
        "averageOrderValue": float(average),
    }


def get_disputed_orders(admin_id: int) -> list[dict]:
    verify_admin(admin_id)
    rows = (
        Order.query.filter(Order.status == OrderStatus.DISPUTE_OPENED.value)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    return [o.to_dict() for o in rows]


def get_platform_fees_summary(
    admin_id: int, start: Optional[datetime] = None, end: Optional[datetime] = None
) -> dict:
    """Platform fees collected on paid orders created within ``[start, end]``."""
    verify_admin(admin_id)
    if start is not None and end is not None and start > end:
        raise ValidationFailed("start must not be after end", start=start.isoformat(), end=end.isoformat())

    q = Order.query.filter(Order.status.in_(_PAID_VALUES))
    if start is not None:
        q = q.filter(Order.created_at >= start)
    if end is not None:
        q = q.filter(Order.created_at <= end)
    orders = q.all()

    total_fees = sum((to_money(o.platform_fee) for o in orders), ZERO)
    total_revenue = sum((to_money(o.total_amount) for o in orders), ZERO)
    percentage = (total_fees * 100 / total_revenue).quantize(Decimal("0.01")) if total_revenue > 0 else ZERO
    return {
        "totalFees": float(total_fees),
        "totalOrderRevenue": float(total_revenue),
        "feePercentage": float(percentage),
        "orderCount": len(orders),
        "periodStart": start.isoformat() if start else None,
        "periodEnd": end.isoformat() if end else None,
    }


def get_seller_payout_history(admin_id: int, seller_id: Optional[int] = None) -> dict:
    verify_admin(admin_id)
    q = SellerPayout.query
    if seller_id is not None:
        if db.session.get(Seller, int(seller_id)) is None:
            raise NotFound("seller not found", seller_id=seller_id)
        q = q.filter_by(seller_id=int(seller_id))
    payouts = q.order_by(SellerPayout.created_at.desc(), SellerPayout.id.desc()).all()

    # processing payouts have not landed yet, so they count as pending
    paid = sum((to_money(p.amount) for p in payouts if p.status == "paid"), ZERO)
    pending = sum((to_money(p.amount) for p in payouts if p.status in ("pending", "processing")), ZERO)
    return {
        "payouts": [p.to_dict() for p in payouts],
        "totalPaid": float(paid),
        "totalPending": float(pending),
    }


def review_seller_application(admin_id: int, application_id: int, action: str, reason: str = "") -> dict:
    verify_admin(admin_id)
    if action not in ("approve", "reject"):
        raise ValidationFailed("action must be approve or reject", action=action)

    app_row = db.session.get(SellerApplication, int(application_id))
    if app_row is None:
        raise NotFound("seller application not found", application_id=application_id)
    if app_row.status != "pending":
        raise InvalidState(f"application already {app_row.status}", status=app_row.status)

    now = datetime.utcnow()
    app_row.status = "approved" if action == "approve" else "rejected"
    app_row.reviewed_by = int(admin_id)
    app_row.reviewed_at = now
    if action == "reject":
        app_row.rejection_reason = (reason or "")[:240] or None

    seller_id = None
    if action == "approve":
        seller = Seller.query.filter_by(user_id=int(app_row.user_id)).first()
        if seller is None:
            seller = Seller(user_id=int(app_row.user_id), shop_name=app_row.shop_name, status="approved")
            db.session.add(seller)
            db.session.flush()
        get_balance(int(seller.id))
        user = db.session.get(User, int(app_row.user_id))
        if user is not None and user.role != "admin":
            user.role = "seller"
        seller_id = int(seller.id)

    audit.record(
        f"seller_application_{app_row.status}",
        actor_id=admin_id,
        target_type="seller_application",
        target_id=app_row.id,
        detail={"user_id": app_row.user_id, "seller_id": seller_id, "reason": reason or None},
    )
    db.session.commit()
    return {"application": app_row.to_dict(), "seller_id": seller_id}


_MODERATION = {"approve": "approved", "reject": "rejected", "flag": "flagged"}


def moderate_product(admin_id: int, product_id: int, action: str, notes: str = "") -> dict:
    verify_admin(admin_id)
    status = _MODERATION.get(action)
    if status is None:
        raise ValidationFailed("action must be approve, reject or flag", action=action)

    product = db.session.get(Product, int(product_id))
    if product is None:
        raise NotFound("product not found", product_id=product_id)

    previous = product.moderation_status
    product.moderation_status = status
    product.moderated_by = int(admin_id)
    product.moderated_at = datetime.utcnow()
    product.moderation_notes = (notes or "")[:240] or None
    audit.record(
        f"product_{status}",
        actor_id=admin_id,
        target_type="product",
        target_id=product.id,
        detail={"previous": previous, "notes": notes or None},
    )
    db.session.commit()
    return product.to_dict()


def suspend_user(admin_id: int, user_id: int, reason: str = "") -> dict:
    verify_admin(admin_id)
    if int(user_id) == int(admin_id):
        raise InvalidState("cannot suspend yourself")

    user = db.session.get(User, int(user_id))
    if user is None:
        raise NotFound("user not found", user_id=user_id)

    user.is_banned = True
    user.ban_reason = (reason or "")[:240] or None
    user.banned_at = datetime.utcnow()
    seller = Seller.query.filter_by(user_id=int(user.id)).first()
    if seller is not None:
        seller.status = "suspended"
        seller.updated_at = datetime.utcnow()

    audit.record("user_suspended", actor_id=admin_id, target_type="user", target_id=user.id, detail={"reason": reason or None})
    db.session.commit()
    return user.to_dict()


def unsuspend_user(admin_id: int, user_id: int) -> dict:
    verify_admin(admin_id)
    user = db.session.get(User, int(user_id))
    if user is None:
        raise NotFound("user not found", user_id=user_id)

    user.is_banned = False
    user.ban_reason = None
    user.banned_at = None
    seller = Seller.query.filter_by(user_id=int(user.id)).first()
    if seller is not None and seller.status == "suspended":
        seller.status = "approved"
        seller.updated_at = datetime.utcnow()

    audit.record("user_unsuspended", actor_id=admin_id, target_type="user", target_id=user.id)
    db.session.commit()
    return user.to_dict()


def get_user_activity(admin_id: int, user_id: int, limit: int = 50) -> dict:
    verify_admin(admin_id)
    user = db.session.get(User, int(user_id))
    if user is None:
        raise NotFound("user not found", user_id=user_id)

    orders = Order.query.filter_by(buyer_id=int(user.id)).order_by(Order.created_at.desc()).limit(int(limit)).all()
    actions = (
        AuditLog.query.filter(AuditLog.target_type == "user", AuditLog.target_id == str(user.id))
        .order_by(AuditLog.created_at.desc())
        .limit(int(limit))
        .all()
    )
    spent = (
        db.session.query(func.coalesce(func.sum(Order.total_amount), 0))
        .filter(Order.buyer_id == int(user.id), Order.status.in_(_PAID_VALUES))
        .scalar()
    )
    seller = Seller.query.filter_by(user_id=int(user.id)).first()
    balance = SellerBalance.query.filter_by(seller_id=int(seller.id)).first() if seller else None
    return {
        "user": user.to_dict(),
        "orders": [o.to_dict() for o in orders],
        "adminActions": [a.to_dict() for a in actions],
        "totalSpent": float(to_money(spent)),
        "seller": seller.to_dict() if seller else None,
        "balance": balance.to_dict() if balance else None,
    }


def list_audit(admin_id: int, *, target_id=None, action: str = "", limit: int = 200) -> list[dict]:
    verify_admin(admin_id)
    return [row.to_dict() for row in audit.query(target_id=target_id, action=action, limit=limit)]
