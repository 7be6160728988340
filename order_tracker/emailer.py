"""Settlement notification e-mail."""
import os
import smtplib
import ssl
from email.message import EmailMessage
import logging

from order_tracker.execution.order import Order

logger = logging.getLogger("emailer")


def build_settlement_message(orders: list[Order]) -> tuple[str, str]:
    """Return (subject, body) for a batch of settled orders."""
    markets = list(dict.fromkeys(order.product_id for order in orders if order.product_id))
    noun = "orders" if len(orders) > 1 else "order"
    return f"{len(orders)} {noun} filled!", f"In: {', '.join(markets)}"


def send_settlement_email(orders: list[Order], email_to: str | None = None) -> bool:
    host = os.environ.get("EMAIL_HOST")
    port = int(os.environ.get("EMAIL_PORT", 465))
    username = os.environ.get("EMAIL_USERNAME")
    password = os.environ.get("EMAIL_PASSWORD")
    recipient = email_to or os.environ.get("EMAIL_TO") or username
    if not all([host, port, username, password, recipient]):
        logger.error("Email credentials missing in environment variables.")
        return False
    subject, body = build_settlement_message(orders)
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = username
    msg["To"] = recipient
    msg.set_content(body)
    try:
        context = ssl.create_default_context()
        with smtplib.SMTP_SSL(host, port, context=context) as server:
            server.login(username, password)
            server.send_message(msg)
        logger.info("Settlement email sent: %s", subject)
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send settlement email: {e}")
        return False
