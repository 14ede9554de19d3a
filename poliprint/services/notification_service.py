# poliprint/services/notification_service.py
import html
import logging

from poliprint.core import email_client
from poliprint.models.order import Order

logger = logging.getLogger(__name__)

# order status -> (subject, body); formatted with the order
_TEMPLATES: dict[str, tuple[str, str]] = {
    "paid": (
        "[PoliPrint] Замовлення {reference} оплачено",
        "Дякуємо! Оплату {total_amount:.2f} {currency} за замовлення {reference} "
        "отримано. Ми передали його у виробництво.",
    ),
    "payment_failed": (
        "[PoliPrint] Оплата замовлення {reference} не пройшла",
        "На жаль, оплата замовлення {reference} не пройшла. "
        "Спробуйте ще раз або зв'яжіться з нами.",
    ),
    "payment_processing": (
        "[PoliPrint] Оплата замовлення {reference} обробляється",
        "Платіж за замовлення {reference} обробляється банком. "
        "Ми повідомимо, щойно він буде підтверджений.",
    ),
    "refunded": (
        "[PoliPrint] Повернення коштів за замовлення {reference}",
        "Кошти за замовлення {reference} повернуто.",
    ),
}


def render_html(order: Order, body: str) -> str:
    """
    HTML alternative of a notification. Customer-supplied values are escaped.
    """
    return (
        '<div style="font-family: Arial, sans-serif; color: #222;">'
        f"<p>{html.escape(order.customer_name)},</p>"
        f"<p>{html.escape(body)}</p>"
        "<table>"
        f"<tr><td>Замовлення</td><td><b>{html.escape(order.reference)}</b></td></tr>"
        f"<tr><td>Сума</td><td>{order.total_amount:.2f} {html.escape(order.currency)}</td></tr>"
        "</table>"
        "<p>PoliPrint</p>"
        "</div>"
    )


class OrderNotifier:
    """
    Tells the customer about payment status changes.

    Sends email (plain text plus an HTML alternative) when SMTP is
    configured and the order has an address, otherwise only logs.
    Delivery failures propagate to the caller.
    """

    def notify_status(self, order: Order, status: str) -> None:
        template = _TEMPLATES.get(status)
        if template is None:
            return

        subject, body = (
            part.format(
                reference=order.reference,
                total_amount=order.total_amount,
                currency=order.currency,
            )
            for part in template
        )

        if not order.customer_email or not email_client.is_configured():
            logger.info("Notification for order %s (%s): %s", order.reference, status, subject)
            return

        email_client.send_email(
            to_email=order.customer_email,
            subject=subject,
            text_body=f"{order.customer_name},\n\n{body}\n\nPoliPrint",
            html_body=render_html(order, body),
        )
        logger.info("Sent %s notification for order %s", status, order.reference)
