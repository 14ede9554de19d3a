from __future__ import annotations

import logging

import pytest

from poliprint.core import email_client
from poliprint.core.config import Settings
from poliprint.models.order import Order
from poliprint.services.notification_service import OrderNotifier


def make_order(**overrides) -> Order:
    fields = dict(
        reference="PP-20261017-ABCDEF12",
        customer_name="Олена <Коваль>",
        customer_email="olena@example.com",
        customer_phone="+380501112233",
        city_recipient="kharkiv-ref",
        warehouse_ref="warehouse-1",
        status="paid",
        items_total=400.0,
        delivery_cost=50.0,
        total_amount=450.0,
    )
    fields.update(overrides)
    return Order(**fields)


@pytest.fixture()
def outbox(monkeypatch):
    sent = []
    monkeypatch.setattr(email_client, "is_configured", lambda settings=None: True)
    monkeypatch.setattr(email_client, "send_email", lambda **kwargs: sent.append(kwargs))
    return sent


def smtp_settings(**overrides) -> Settings:
    fields = dict(
        SMTP_HOST="smtp.test",
        SMTP_PORT=2525,
        SMTP_USERNAME="orders@poliprint.ua",
        SMTP_PASSWORD="secret",
        SMTP_USE_TLS=False,
    )
    fields.update(overrides)
    return Settings(**fields)


def test_paid_notification_has_text_and_html(outbox):
    OrderNotifier().notify_status(make_order(), "paid")

    assert len(outbox) == 1
    mail = outbox[0]
    assert mail["to_email"] == "olena@example.com"
    assert "PP-20261017-ABCDEF12" in mail["subject"]
    assert "450.00 UAH" in mail["text_body"]
    assert "<b>PP-20261017-ABCDEF12</b>" in mail["html_body"]
    assert "450.00 UAH" in mail["html_body"]


def test_html_escapes_customer_values(outbox):
    OrderNotifier().notify_status(make_order(), "payment_failed")

    html_body = outbox[0]["html_body"]
    assert "&lt;Коваль&gt;" in html_body
    assert "<Коваль>" not in html_body


def test_order_without_email_is_only_logged(outbox, caplog):
    with caplog.at_level(logging.INFO, logger="poliprint.services.notification_service"):
        OrderNotifier().notify_status(make_order(customer_email=None), "paid")

    assert outbox == []
    assert "PP-20261017-ABCDEF12" in caplog.text


def test_status_without_template_sends_nothing(outbox):
    OrderNotifier().notify_status(make_order(), "shipped")

    assert outbox == []


def test_message_carries_html_alternative():
    msg = email_client.build_message(
        smtp_settings(SMTP_FROM_NAME="PoliPrint"),
        "olena@example.com",
        "Тема",
        "text body",
        "<p>html body</p>",
    )

    assert msg["To"] == "olena@example.com"
    assert "orders@poliprint.ua" in msg["From"]
    assert msg.get_content_type() == "multipart/alternative"
    assert msg.get_body(("html",)).get_content().strip() == "<p>html body</p>"
    assert msg.get_body(("plain",)).get_content().strip() == "text body"


class FakeSMTP:
    instances: list["FakeSMTP"] = []

    def __init__(self, host, port, timeout=None):
        self.host, self.port = host, port
        self.logged_in = None
        self.messages = []
        self.closed = False
        FakeSMTP.instances.append(self)

    def starttls(self):
        raise AssertionError("STARTTLS disabled in these settings")

    def login(self, username, password):
        self.logged_in = (username, password)

    def send_message(self, msg):
        self.messages.append(msg)

    def quit(self):
        self.closed = True


def test_send_email_logs_in_and_sends(monkeypatch):
    FakeSMTP.instances.clear()
    monkeypatch.setattr(email_client.smtplib, "SMTP", FakeSMTP)

    email_client.send_email(
        "olena@example.com", "Тема", "text", "<p>html</p>", settings=smtp_settings()
    )

    server = FakeSMTP.instances[0]
    assert (server.host, server.port) == ("smtp.test", 2525)
    assert server.logged_in == ("orders@poliprint.ua", "secret")
    assert len(server.messages) == 1
    assert server.closed is True


def test_send_email_requires_credentials():
    with pytest.raises(RuntimeError):
        email_client.send_email("a@example.com", "s", "t", settings=smtp_settings(SMTP_PASSWORD=None))
