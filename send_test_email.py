# send_test_email.py

import sys

from poliprint.core import email_client
from poliprint.models.order import Order
from poliprint.services.notification_service import OrderNotifier


def main():
    if len(sys.argv) < 2:
        print("Usage: python send_test_email.py <recipient-email>")
        sys.exit(1)

    if not email_client.is_configured():
        print("SMTP is not configured, set SMTP_HOST / SMTP_USERNAME / SMTP_PASSWORD in .env")
        sys.exit(1)

    order = Order(
        reference="PP-TEST-0001",
        customer_name="Тестовий клієнт",
        customer_email=sys.argv[1],
        customer_phone="+380000000000",
        city_recipient="kyiv-ref",
        warehouse_ref="warehouse-1",
        items_total=250.0,
        delivery_cost=50.0,
        total_amount=300.0,
    )

    print(f"Sending test 'paid' notification to {order.customer_email}...")
    OrderNotifier().notify_status(order, "paid")
    print("If no errors: email sent! Check your inbox.")


if __name__ == "__main__":
    main()
