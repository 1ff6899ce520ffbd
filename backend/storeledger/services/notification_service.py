# Overview: Best-effort order confirmation mails sent over SMTP after commit.

"""
Order Notifications

dispatch_order_notifications() is called after an order has committed. It
snapshots the order into plain data, then sends:
- a confirmation to the customer (when the order has an email)
- an alert to ADMIN_NOTIFICATION_EMAIL (when configured)

Sending happens on a daemon thread unless NOTIFICATIONS_ASYNC is off. Every
failure is logged through app.logger and never raised to the caller.
"""

from __future__ import annotations

import smtplib
import threading
from email.message import EmailMessage
from email.utils import formataddr

from flask import current_app

from ..models import Order


def build_order_snapshot(order: Order) -> dict:
    return {
        "order_number": order.order_number,
        "customer_name": order.customer_name,
        "email": order.email,
        "phone": order.phone,
        "city": order.city,
        "address": order.address,
        "total": order.total,
        "items": [
            {
                "name": item.product.name if item.product else f"Product {item.product_id}",
                "quantity": item.quantity,
                "price": item.price,
            }
            for item in order.items
        ],
    }


def render_order_email(snapshot: dict, *, currency: str, for_admin: bool) -> tuple[str, str]:
    """Return (subject, plain-text body) for one recipient."""
    if for_admin:
        subject = f"New order {snapshot['order_number']} - {snapshot['customer_name']}"
        greeting = "A new order has been placed."
    else:
        subject = f"Order confirmation {snapshot['order_number']}"
        greeting = (
            f"Hello {snapshot['customer_name']},\n\n"
            f"Thank you for your order {snapshot['order_number']}. "
            "We will contact you shortly to confirm delivery."
        )

    lines = [greeting, "", "Items:"]
    for item in snapshot["items"]:
        lines.append(f"  {item['name']} x{item['quantity']}  {item['price']} {currency}")
    lines += [
        "",
        f"Total: {snapshot['total']} {currency} (cash on delivery)",
        "",
        "Delivery details:",
        f"  Name: {snapshot['customer_name']}",
        f"  Phone: {snapshot['phone']}",
        f"  City: {snapshot['city']}",
        f"  Address: {snapshot['address']}",
    ]
    return subject, "\n".join(lines)


def send_email(config: dict, to: str, subject: str, body: str) -> None:
    """Send one plain-text mail. Raises on SMTP errors."""
    msg = EmailMessage()
    msg["From"] = formataddr((config.get("MAIL_SENDER_NAME") or "Store", config["MAIL_SENDER"]))
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(body)

    with smtplib.SMTP(config["MAIL_SERVER"], config.get("MAIL_PORT", 587), timeout=10) as smtp:
        if config.get("MAIL_USE_TLS", True):
            smtp.starttls()
        if config.get("MAIL_USERNAME"):
            smtp.login(config["MAIL_USERNAME"], config.get("MAIL_PASSWORD") or "")
        smtp.send_message(msg)


def _deliver(app, snapshot: dict) -> None:
    logger = app.logger
    config = app.config
    currency = config.get("CURRENCY", "MAD")

    recipients = []
    if snapshot.get("email"):
        recipients.append((snapshot["email"], False))
    else:
        logger.info("Order %s has no customer email; skipping confirmation", snapshot["order_number"])
    if config.get("ADMIN_NOTIFICATION_EMAIL"):
        recipients.append((config["ADMIN_NOTIFICATION_EMAIL"], True))

    for to, for_admin in recipients:
        subject, body = render_order_email(snapshot, currency=currency, for_admin=for_admin)
        try:
            send_email(config, to, subject, body)
            logger.info("Sent order mail for %s to %s", snapshot["order_number"], to)
        except Exception:
            logger.exception("Failed to send order mail for %s to %s", snapshot["order_number"], to)


def dispatch_order_notifications(order: Order) -> threading.Thread | None:
    """
    Fire-and-forget confirmation mails for a committed order.

    Returns the worker thread when one was started, else None.
    """
    app = current_app._get_current_object()
    config = app.config

    try:
        if not config.get("NOTIFICATIONS_ENABLED"):
            app.logger.info("Notifications disabled; skipping mails for %s", order.order_number)
            return None
        if not config.get("MAIL_SERVER") or not config.get("MAIL_SENDER"):
            app.logger.info("Mail server not configured; skipping mails for %s", order.order_number)
            return None

        snapshot = build_order_snapshot(order)

        if not config.get("NOTIFICATIONS_ASYNC", True):
            _deliver(app, snapshot)
            return None

        worker = threading.Thread(target=_deliver, args=(app, snapshot), daemon=True)
        worker.start()
        return worker
    except Exception:
        app.logger.exception("Failed to dispatch notifications for order %s", order.order_number)
        return None
