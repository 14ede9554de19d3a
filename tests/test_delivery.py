from __future__ import annotations

import json

import httpx
import pytest

from poliprint.core.errors import StorefrontValidationError, UpstreamServiceError
from poliprint.core.novaposhta_client import NovaPoshtaClient
from poliprint.schemas.delivery import DeliveryCalculationRequest
from poliprint.services.delivery_service import (
    FallbackCarrier,
    NovaPoshtaCarrier,
    calculate_delivery,
    fallback_delivery_cost,
)

NP_URL = "https://np.test/v2.0/json/"


def np_carrier(handler) -> NovaPoshtaCarrier:
    client = NovaPoshtaClient(
        api_key="np-key",
        api_url=NP_URL,
        timeout=2.0,
        transport=httpx.MockTransport(handler),
    )
    return NovaPoshtaCarrier(client)


def request(**overrides) -> DeliveryCalculationRequest:
    body = {"citySender": "kyiv-ref", "cityRecipient": "lviv-ref", "weight": 1, "cost": 100}
    body.update(overrides)
    return DeliveryCalculationRequest.model_validate(body)


# ---- fallback tariff ----


def test_fallback_warehouse_to_warehouse_one_kg():
    quote, params = calculate_delivery(FallbackCarrier(), request())

    assert quote.delivery_cost == 45
    assert quote.packaging_cost == 5
    assert quote.total_cost == 50
    assert quote.assessed_cost == 100
    assert params.cargo_type == "Parcel"
    assert params.seats_amount == 1


def test_fallback_door_to_door_five_kg():
    quote, _ = calculate_delivery(
        FallbackCarrier(), request(weight=5, serviceType="DoorsDoors")
    )

    assert quote.delivery_cost == 80
    assert quote.total_cost == 85


@pytest.mark.parametrize(
    ("weight", "service_type", "expected"),
    [
        (0.5, "WarehouseWarehouse", 45.0),
        (2, "WarehouseDoors", 65.0),
        (3.5, "DoorsWarehouse", 72.5),
        (10, "WarehouseWarehouse", 85.0),
    ],
)
def test_fallback_formula(weight, service_type, expected):
    assert fallback_delivery_cost(weight, service_type) == expected


def test_fallback_is_deterministic():
    carrier = FallbackCarrier()
    assert carrier.track("20450000000001") == carrier.track("20450000000001")
    assert calculate_delivery(carrier, request(weight=7)) == calculate_delivery(carrier, request(weight=7))


@pytest.mark.parametrize("missing", ["citySender", "cityRecipient", "weight", "cost"])
def test_missing_parameter_never_reaches_carrier(missing):
    class ExplodingCarrier(FallbackCarrier):
        def calculate(self, params):
            raise AssertionError("carrier must not be called")

    payload = {"citySender": "kyiv-ref", "cityRecipient": "lviv-ref", "weight": 1, "cost": 100}
    del payload[missing]

    with pytest.raises(StorefrontValidationError):
        calculate_delivery(ExplodingCarrier(), DeliveryCalculationRequest.model_validate(payload))


def test_fallback_city_search():
    carrier = FallbackCarrier()
    assert [c.ref for c in carrier.search_cities("льв", 10)] == ["lviv-ref"]
    assert len(carrier.search_cities("", 3)) == 3


# ---- Nova Poshta adapter ----


def test_nova_poshta_price_request_and_mapping():
    seen = {}

    def handler(req: httpx.Request) -> httpx.Response:
        seen.update(json.loads(req.content))
        return httpx.Response(
            200,
            json={
                "success": True,
                "data": [{"AssessedCost": 100, "Cost": 70, "CostRedelivery": 0, "CostPack": 15, "TZone": 2}],
                "errors": [],
            },
        )

    quote, _ = calculate_delivery(np_carrier(handler), request(weight=3))

    assert seen["apiKey"] == "np-key"
    assert seen["modelName"] == "InternetDocument"
    assert seen["calledMethod"] == "getDocumentPrice"
    assert seen["methodProperties"]["Weight"] == 3
    assert seen["methodProperties"]["CargoType"] == "Parcel"
    assert quote.delivery_cost == 70
    assert quote.packaging_cost == 15
    assert quote.total_cost == 85
    assert quote.zone == "2"


def test_nova_poshta_error_message_is_surfaced():
    def handler(req: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "data": [], "errors": ["CitySender is invalid"]})

    with pytest.raises(UpstreamServiceError, match="CitySender is invalid"):
        calculate_delivery(np_carrier(handler), request())


def test_nova_poshta_timeout_is_upstream_error():
    def handler(req: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=req)

    with pytest.raises(UpstreamServiceError, match="timed out"):
        calculate_delivery(np_carrier(handler), request())


def test_nova_poshta_http_error_is_upstream_error():
    def handler(req: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    with pytest.raises(UpstreamServiceError):
        calculate_delivery(np_carrier(handler), request())


def test_nova_poshta_tracking():
    def handler(req: httpx.Request) -> httpx.Response:
        body = json.loads(req.content)
        assert body["methodProperties"]["Documents"] == [{"DocumentNumber": "20450000000001"}]
        return httpx.Response(
            200,
            json={
                "success": True,
                "data": [{"Number": "20450000000001", "Status": "Видана отримувачу", "StatusCode": "9"}],
                "errors": [],
            },
        )

    status = np_carrier(handler).track("20450000000001")

    assert status.is_delivered is True
    assert status.status_code == "9"


def test_nova_poshta_warehouses_resolve_city_by_name():
    def handler(req: httpx.Request) -> httpx.Response:
        body = json.loads(req.content)
        if body["calledMethod"] == "searchSettlements":
            addresses = [{"MainDescription": "Львів", "DeliveryCity": "lviv-np-ref", "Ref": "settlement"}]
            return httpx.Response(200, json={"success": True, "data": [{"Addresses": addresses}], "errors": []})
        assert body["methodProperties"] == {"CityRef": "lviv-np-ref"}
        return httpx.Response(
            200,
            json={"success": True, "data": [{"Ref": "w1", "Description": "Відділення №1", "Number": "1"}], "errors": []},
        )

    warehouses = np_carrier(handler).get_warehouses(None, "Львів")

    assert [w.ref for w in warehouses] == ["w1"]


# ---- endpoints (fallback carrier) ----


def test_calculate_endpoint(client):
    res = client.post(
        "/api/np/calculate",
        json={"citySender": "kyiv-ref", "cityRecipient": "odesa-ref", "weight": 1, "cost": 100},
    )

    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["calculation"]["deliveryCost"] == 45
    assert body["calculation"]["totalCost"] == 50
    assert body["parameters"]["serviceType"] == "WarehouseWarehouse"


def test_calculate_endpoint_missing_field(client):
    res = client.post("/api/np/calculate", json={"citySender": "kyiv-ref", "weight": 1, "cost": 100})

    assert res.status_code == 400
    assert res.json()["error"] == "Missing required parameters"


def test_calculate_endpoint_upstream_failure(client):
    from poliprint.main import app
    from poliprint.routers.delivery import get_carrier

    def failing(req: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=req)

    app.dependency_overrides[get_carrier] = lambda: np_carrier(failing)
    try:
        res = client.post(
            "/api/np/calculate",
            json={"citySender": "kyiv-ref", "cityRecipient": "odesa-ref", "weight": 1, "cost": 100},
        )
    finally:
        app.dependency_overrides.clear()

    assert res.status_code == 500
    assert res.json() == {
        "success": False,
        "error": "Upstream service error",
        "message": "connection refused",
    }


def test_lookup_endpoints(client):
    cities = client.get("/api/np/cities", params={"q": "Хар"}).json()
    assert [c["ref"] for c in cities["cities"]] == ["kharkiv-ref"]

    warehouses = client.get("/api/np/warehouses", params={"cityRef": "kyiv-ref"}).json()
    assert warehouses["cityRef"] == "kyiv-ref"
    assert len(warehouses["warehouses"]) == 2

    assert client.get("/api/np/track").status_code == 400
    tracked = client.get("/api/np/track", params={"number": "20450000000001"}).json()
    assert tracked["trackingNumber"] == "20450000000001"
    assert isinstance(tracked["status"]["isDelivered"], bool)
