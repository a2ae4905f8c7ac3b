from __future__ import annotations

from flask import current_app
import requests

RESEND_URL = "https://api.resend.com/emails"


def send_email(*, to: str, subject: str, html: str) -> tuple[bool, str]:
    """Send one transactional email through Resend.

    Returns (ok, detail). Never raises: callers run after their transaction has
    committed and only log the outcome.
    """
    api_key = (current_app.config.get("RESEND_API_KEY") or "").strip()
    if not api_key:
        return False, "RESEND_API_KEY not set"
    if not (to or "").strip():
        return False, "missing recipient"

    payload = {
        "from": current_app.config.get("MAIL_FROM"),
        "to": [to.strip()],
        "subject": subject,
        "html": html,
    }
    headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
    try:
        r = requests.post(RESEND_URL, json=payload, headers=headers, timeout=10)
        if 200 <= r.status_code < 300:
            return True, "sent"
        return False, f"resend_http_{r.status_code}"
    except requests.RequestException as e:
        return False, f"resend_exception:{e}"


def order_confirmation_html(order) -> str:
    rows = "".join(
        f"<tr><td>{item.product.title if item.product else item.product_id}</td>"
        f"<td>{item.quantity}</td><td>{item.unit_price} {order.currency}</td></tr>"
        for item in order.items
    )
    return (
        f"<h1>Thank you for your order</h1>"
        f"<p>Order <strong>{order.order_number}</strong> has been paid.</p>"
        f"<table>{rows}</table>"
        f"<p>Total: {order.total_amount} {order.currency}</p>"
    )


def shipping_html(order, tracking_url: str) -> str:
    return (
        f"<h1>Your order is on its way</h1>"
        f"<p>Order <strong>{order.order_number}</strong> was shipped with {order.shipping_carrier.upper()}.</p>"
        f"<p>Tracking number: {order.tracking_number}</p>"
        f'<p><a href="{tracking_url}">Track your parcel</a></p>'
    )
