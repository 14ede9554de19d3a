from __future__ import annotations

from poliprint.core.config import get_settings
from poliprint.core.payment_signature import create_signature, decode_data, encode_data


def signed(payload: dict) -> dict:
    data = encode_data(payload)
    return {"data": data, "signature": create_signature(data, get_settings().LIQPAY_PRIVATE_KEY)}


# ---- create ----


def test_create_payment_builds_signed_form(client):
    res = client.post(
        "/api/payment/create",
        json={
            "amount": 1250,
            "description": "Друк полотна 60x90",
            "orderId": "PP-CUSTOM-1",
            "customerEmail": "client@example.com",
        },
    )

    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["order"] == {
        "orderId": "PP-CUSTOM-1",
        "amount": 1250.0,
        "currency": "UAH",
        "description": "Друк полотна 60x90",
    }

    payment = body["payment"]
    settings = get_settings()
    assert payment["signature"] == create_signature(payment["data"], settings.LIQPAY_PRIVATE_KEY)
    assert payment["action"] == settings.LIQPAY_CHECKOUT_URL
    assert 'name="signature"' in payment["formHtml"]

    params = decode_data(payment["data"])
    assert params["version"] == 3
    assert params["action"] == "pay"
    assert params["language"] == "uk"
    assert params["product_category"] == "printing"
    assert params["customer"] == {"email": "client@example.com"}
    assert params["server_url"].endswith("/api/payment/webhook")
    assert settings.LIQPAY_PRIVATE_KEY not in str(params)


def test_create_payment_without_customer_has_no_customer_block(client):
    res = client.post(
        "/api/payment/create",
        json={"amount": 10, "description": "Наліпки", "orderId": "PP-CUSTOM-2"},
    )
    assert "customer" not in decode_data(res.json()["payment"]["data"])


def test_create_payment_validation(client):
    res = client.post("/api/payment/create", json={"amount": 10, "orderId": "x"})
    assert res.status_code == 400
    assert res.json()["error"] == "Missing required parameters"

    res = client.post(
        "/api/payment/create",
        json={"amount": -5, "description": "d", "orderId": "x"},
    )
    assert res.status_code == 400
    assert res.json()["error"] == "Invalid amount"


# ---- webhook ----


def test_webhook_requires_data_and_signature(client):
    res = client.post("/api/payment/webhook", data={"data": "abc"})
    assert res.status_code == 400
    assert res.json() == {
        "success": False,
        "error": "Missing webhook data",
        "message": "data and signature are required",
    }


def test_webhook_rejects_bad_signature(client):
    form = signed({"order_id": "PP-1", "status": "success"})
    form["signature"] = form["signature"] + "x"

    res = client.post("/api/payment/webhook", data=form)

    assert res.status_code == 403
    assert res.json()["error"] == "Invalid signature"


def test_webhook_rejects_undecodable_payload(client):
    data = "bm90IGpzb24="  # base64("not json")
    signature = create_signature(data, get_settings().LIQPAY_PRIVATE_KEY)

    res = client.post("/api/payment/webhook", data={"data": data, "signature": signature})

    assert res.status_code == 400
    assert res.json()["success"] is False


def test_webhook_unknown_order_is_acknowledged_as_unprocessed(client):
    res = client.post("/api/payment/webhook", data=signed({"order_id": "PP-404", "status": "success"}))

    assert res.status_code == 200
    assert res.json() == {
        "success": True,
        "orderId": "PP-404",
        "status": "success",
        "processed": False,
        "message": "Order processing failed",
    }


def test_webhook_unrecognised_status(client):
    res = client.post("/api/payment/webhook", data=signed({"order_id": "PP-1", "status": "hold_wait"}))

    assert res.status_code == 200
    assert res.json()["processed"] is True
    assert res.json()["message"] == "Status 'hold_wait' processed"


# ---- status ----


def test_status_requires_order_id(client):
    res = client.get("/api/payment/status")
    assert res.status_code == 400
    assert res.json()["error"] == "Missing order ID"


def test_status_from_mock_gateway_is_deterministic(client):
    first = client.get("/api/payment/status", params={"orderId": "PP-1"}).json()
    second = client.get("/api/payment/status", params={"orderId": "PP-1"}).json()

    assert first == second
    assert first["success"] is True
    assert first["orderId"] == "PP-1"
    assert first["payment"]["status"] == "success"
    assert first["payment"]["isPaid"] is True
    assert first["payment"]["isFailed"] is False
    assert first["payment"]["isProcessing"] is False


def test_status_flags_for_prepared_payment(client):
    from poliprint.routers.payment import get_gateway
    from poliprint.main import app
    from poliprint.schemas.payment import PaymentCheckResult

    class PreparedGateway:
        def check_status(self, order_id):
            return PaymentCheckResult(success=False, status="prepared", order_id=order_id)

    app.dependency_overrides[get_gateway] = PreparedGateway
    try:
        body = client.get("/api/payment/status", params={"orderId": "PP-2"}).json()
    finally:
        app.dependency_overrides.clear()

    assert body["success"] is False
    assert body["payment"]["isProcessing"] is True
    assert body["payment"]["isPaid"] is False


# ---- refund ----


def test_refund_requires_admin(client, user_headers):
    payload = {"orderId": "PP-1", "amount": 100}

    assert client.post("/api/payment/refund", json=payload).status_code == 401
    res = client.post("/api/payment/refund", json=payload, headers=user_headers)
    assert res.status_code == 403
    assert res.json()["error"] == "Admin access required"


def test_refund_validation(client, admin_headers):
    res = client.post("/api/payment/refund", json={"orderId": "PP-1"}, headers=admin_headers)
    assert res.status_code == 400

    res = client.post("/api/payment/refund", json={"orderId": "PP-1", "amount": -3}, headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["error"] == "Invalid amount"


def test_refund_through_mock_gateway(client, admin_headers):
    res = client.post(
        "/api/payment/refund",
        json={"orderId": "PP-EXTERNAL", "amount": 120.5},
        headers=admin_headers,
    )

    assert res.status_code == 200
    body = res.json()
    assert body["message"] == "Refund processed successfully"
    assert body["refund"]["orderId"] == "PP-EXTERNAL"
    assert body["refund"]["amount"] == 120.5
    assert body["refund"]["comment"] == "Refund processed"
    assert body["refund"]["refundId"] is not None


def test_refund_failure_is_400(client, admin_headers):
    from poliprint.routers.payment import get_gateway
    from poliprint.main import app
    from poliprint.schemas.payment import RefundResult

    class DecliningGateway:
        def refund(self, order_id, amount, comment):
            return RefundResult(success=False, error="payment not found")

    app.dependency_overrides[get_gateway] = DecliningGateway
    try:
        res = client.post(
            "/api/payment/refund",
            json={"orderId": "PP-1", "amount": 10},
            headers=admin_headers,
        )
    finally:
        app.dependency_overrides.clear()

    assert res.status_code == 400
    assert res.json() == {"success": False, "error": "Refund failed", "message": "payment not found"}
