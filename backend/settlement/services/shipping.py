from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from flask import current_app

from settlement.errors import Forbidden, InvalidState, NotFound, ValidationFailed
from settlement.extensions import db
from settlement.models import Order, Seller, User
from settlement.services.order_machine import Effect, OrderEvent, OrderStatus
from settlement.services.orders import apply_event
from settlement.utils import audit, mailer
from settlement.utils.notify import notify
from settlement.utils.tracking import normalize_tracking_number, tracking_url, validate_tracking_number

DEFAULT_CARRIER = "dhl"
DEFAULT_DELIVERY_DAYS = 7

# Sendcloud parcel status id for "Delivered"
DELIVERED_STATUS_ID = 11


def mark_shipped(
    order_id: int,
    seller_user_id: int,
    tracking_number: str,
    carrier: str = DEFAULT_CARRIER,
    estimated_delivery: Optional[datetime] = None,
) -> dict:
    """Record a shipment for ``order_id``.

    On a PAID order this ships it and notifies the buyer. On an order that is
    already SHIPPED only the tracking details are replaced.
    """
    carrier = (carrier or DEFAULT_CARRIER).strip().lower()
    cleaned = normalize_tracking_number(tracking_number)
    if not validate_tracking_number(cleaned, carrier):
        raise ValidationFailed(f"invalid tracking number for {carrier.upper()}", carrier=carrier)

    order = Order.query.filter_by(id=int(order_id)).with_for_update().first()
    if order is None:
        raise NotFound("order not found", order_id=order_id)

    seller = Seller.query.filter_by(user_id=int(seller_user_id)).first()
    owns_item = seller is not None and any(
        item.product is not None and int(item.product.seller_id) == int(seller.id) for item in order.items
    )
    if not owns_item:
        raise Forbidden("not a seller of this order")

    if order.state not in (OrderStatus.PAID, OrderStatus.SHIPPED):
        raise InvalidState(f"order cannot be shipped in status {order.status}", status=order.status)

    is_update = order.state == OrderStatus.SHIPPED
    now = datetime.utcnow()
    order.tracking_number = cleaned
    order.shipping_carrier = carrier
    if estimated_delivery is not None:
        order.estimated_delivery = estimated_delivery
    elif order.estimated_delivery is None:
        order.estimated_delivery = now + timedelta(days=DEFAULT_DELIVERY_DAYS)
    order.updated_at = now

    t = None
    if not is_update:
        t = apply_event(order, OrderEvent.SHIP, actor_id=seller_user_id, source="manual-ship")
        order.shipped_at = now

    audit.record(
        "tracking_updated" if is_update else "order_shipped",
        actor_id=seller_user_id,
        target_type="order",
        target_id=order.id,
        detail={"tracking_number": cleaned, "carrier": carrier},
    )
    db.session.commit()

    url = tracking_url(carrier, cleaned)
    if t is not None and Effect.NOTIFY_SHIPPED in t.effects:
        _notify_shipped(order, url)
    return {"order": order.to_dict(), "tracking_url": url, "updated": is_update}


def _notify_shipped(order: Order, url: Optional[str]) -> None:
    try:
        notify(
            order.buyer_id,
            "order_shipped",
            "Your order has shipped",
            f"Order {order.order_number} is on its way ({order.shipping_carrier.upper()} {order.tracking_number}).",
            link=f"/orders/{order.id}",
            data={
                "order_id": order.id,
                "tracking_number": order.tracking_number,
                "carrier": order.shipping_carrier,
                "tracking_url": url,
            },
        )
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.warning("shipping notification for order %s failed: %s", order.id, e)
        return

    buyer = db.session.get(User, int(order.buyer_id))
    if buyer is None:
        return
    ok, detail = mailer.send_email(
        to=buyer.email,
        subject=f"Your order {order.order_number} has shipped",
        html=mailer.shipping_html(order, url or ""),
    )
    if not ok:
        current_app.logger.warning("shipping email for order %s not sent: %s", order.id, detail)


def confirm_delivery(tracking_number: str) -> Optional[Order]:
    """SHIPPED -> DELIVERED for the order carrying ``tracking_number``."""
    cleaned = normalize_tracking_number(tracking_number)
    if not cleaned:
        return None
    order = Order.query.filter_by(tracking_number=cleaned).with_for_update().first()
    if order is None:
        current_app.logger.info("delivery for unknown tracking number %s", cleaned)
        return None

    t = apply_event(order, OrderEvent.DELIVER, source=f"carrier:{cleaned}")
    if t is None:
        db.session.rollback()
        return order
    order.delivered_at = datetime.utcnow()
    db.session.commit()
    return order


def handle_carrier_event(payload: dict) -> dict:
    """Carrier callback; only parcel deliveries change anything."""
    if (payload or {}).get("action") != "parcel_status_changed":
        return {"ok": True, "handled": False}
    parcel = payload.get("parcel") or {}
    status = parcel.get("status") or {}
    delivered = status.get("id") == DELIVERED_STATUS_ID or (status.get("message") or "").strip().lower() == "delivered"
    if not delivered:
        return {"ok": True, "handled": False}

    order = confirm_delivery(parcel.get("tracking_number") or "")
    if order is None:
        return {"ok": True, "handled": False}
    return {"ok": True, "handled": True, "order_id": order.id, "status": order.status}
