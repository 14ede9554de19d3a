from __future__ import annotations

import pytest

from poliprint.core.config import get_settings
from poliprint.core.payment_signature import create_signature, decode_data, encode_data

CANVAS = {
    "productReference": {"category": "canvas", "productId": "canvas-40x60"},
    "chosenOptions": {"size": "40x60", "frame": "2cm"},
    "quantity": 2,
    "unitPrice": 600,
    "title": "Картина на полотні 40x60",
}

CUSTOMER = {
    "customer_name": "Олена Коваль",
    "customer_phone": "+380501112233",
    "customer_email": "olena@example.com",
    "city_recipient": "kharkiv-ref",
    "warehouse_ref": "warehouse-1",
}


def webhook(client, reference: str, status: str):
    data = encode_data({"order_id": reference, "status": status, "amount": 1250, "currency": "UAH"})
    signature = create_signature(data, get_settings().LIQPAY_PRIVATE_KEY)
    return client.post("/api/payment/webhook", data={"data": data, "signature": signature})


@pytest.fixture()
def placed_order(client, cart_headers) -> dict:
    client.post("/api/cart/items", json=CANVAS, headers=cart_headers)
    res = client.post("/api/orders/checkout", json=CUSTOMER, headers=cart_headers)
    assert res.status_code == 200, res.text
    return res.json()


def test_checkout_creates_order_and_clears_cart(client, cart_headers, placed_order):
    order = placed_order["order"]
    assert order["reference"].startswith("PP-")
    assert order["status"] == "pending"
    assert order["items_total"] == 1200
    assert order["delivery_cost"] == 50
    assert order["total_amount"] == 1250
    assert [(i["category"], i["quantity"], i["line_total"]) for i in order["items"]] == [
        ("canvas", 2, 1200)
    ]
    assert order["items"][0]["options"] == {"size": "40x60", "frame": "2cm"}

    assert placed_order["delivery"]["totalCost"] == 50

    params = decode_data(placed_order["payment"]["data"])
    assert params["order_id"] == order["reference"]
    assert params["amount"] == 1250
    assert params["customer"]["email"] == "olena@example.com"

    assert client.get("/api/cart", headers=cart_headers).json()["items"] == []


def test_checkout_with_empty_cart(client, cart_headers):
    res = client.post("/api/orders/checkout", json=CUSTOMER, headers=cart_headers)
    assert res.status_code == 400
    assert res.json()["error"] == "Cart is empty"


def test_checkout_validates_destination(client, cart_headers):
    client.post("/api/cart/items", json=CANVAS, headers=cart_headers)

    door = {**CUSTOMER, "service_type": "WarehouseDoors"}
    res = client.post("/api/orders/checkout", json=door, headers=cart_headers)
    assert res.status_code == 400

    res = client.post(
        "/api/orders/checkout",
        json={**door, "delivery_address": "вул. Сумська, 1"},
        headers=cart_headers,
    )
    assert res.status_code == 200
    assert res.json()["order"]["delivery_cost"] == 70


def test_duplicate_webhook_applies_once(client, placed_order):
    reference = placed_order["order"]["reference"]

    first = webhook(client, reference, "success").json()
    second = webhook(client, reference, "success").json()

    assert first["processed"] is True
    assert first["message"] == "Payment processed successfully"
    assert second["processed"] is True
    assert second["message"] == "Payment processed successfully (already applied)"

    order = client.get(f"/api/orders/{reference}").json()
    assert order["status"] == "paid"
    assert [p["status"] for p in order["payments"]] == ["paid"]


def test_failed_then_paid(client, placed_order):
    reference = placed_order["order"]["reference"]

    webhook(client, reference, "failure")
    assert client.get(f"/api/orders/{reference}").json()["status"] == "payment_failed"

    webhook(client, reference, "success")
    order = client.get(f"/api/orders/{reference}").json()
    assert order["status"] == "paid"
    assert [p["status"] for p in order["payments"]] == ["payment_failed", "paid"]


def test_unknown_order_reference(client):
    res = client.get("/api/orders/PP-NOPE")
    assert res.status_code == 404
    assert res.json()["error"] == "Order not found"


def test_admin_list_requires_admin(client, user_headers, admin_headers, placed_order):
    assert client.get("/api/orders").status_code == 401
    assert client.get("/api/orders", headers=user_headers).status_code == 403

    res = client.get("/api/orders", headers=admin_headers)
    assert res.status_code == 200
    assert [o["reference"] for o in res.json()] == [placed_order["order"]["reference"]]

    res = client.get("/api/orders", params={"status": "paid"}, headers=admin_headers)
    assert res.json() == []


def test_fulfilment_transitions(client, admin_headers, placed_order):
    reference = placed_order["order"]["reference"]
    url = f"/api/orders/{reference}/status"

    res = client.patch(url, json={"status": "shipped"}, headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["error"] == "Invalid status transition"

    webhook(client, reference, "success")
    for status in ("in_production", "shipped", "delivered"):
        res = client.patch(url, json={"status": status}, headers=admin_headers)
        assert res.status_code == 200, res.text
        assert res.json()["status"] == status

    assert client.patch(url, json={"status": "canceled"}, headers=admin_headers).status_code == 400


def test_payment_statuses_cannot_be_set_by_admin(client, admin_headers, placed_order):
    reference = placed_order["order"]["reference"]
    res = client.patch(f"/api/orders/{reference}/status", json={"status": "paid"}, headers=admin_headers)
    assert res.status_code == 400


def test_cancel_pending_order(client, admin_headers, placed_order):
    reference = placed_order["order"]["reference"]
    res = client.patch(f"/api/orders/{reference}/status", json={"status": "canceled"}, headers=admin_headers)
    assert res.json()["status"] == "canceled"


def test_refund_marks_paid_order_refunded(client, admin_headers, placed_order):
    reference = placed_order["order"]["reference"]
    webhook(client, reference, "success")

    res = client.post(
        "/api/payment/refund",
        json={"orderId": reference, "amount": 1250, "comment": "Брак друку"},
        headers=admin_headers,
    )

    assert res.status_code == 200
    assert res.json()["refund"]["comment"] == "Брак друку"
    assert client.get(f"/api/orders/{reference}").json()["status"] == "refunded"
