# poliprint/core/novaposhta_client.py
"""
Thin HTTP client for the Nova Poshta JSON API (v2.0).

Every call is a POST of

    {"apiKey": ..., "modelName": ..., "calledMethod": ..., "methodProperties": {...}}

and the API answers 200 with {"success": bool, "data": [...], "errors": [...]}.
Transport failures, timeouts and `success: false` answers all surface as
UpstreamServiceError.
"""

import logging
from typing import Any

import httpx

from poliprint.core.errors import UpstreamServiceError

logger = logging.getLogger(__name__)


class NovaPoshtaClient:
    def __init__(
        self,
        api_key: str,
        api_url: str,
        timeout: float,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        # Injected in tests (httpx.MockTransport)
        self._transport = transport

    def _request(
        self,
        model_name: str,
        called_method: str,
        method_properties: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        body = {
            "apiKey": self.api_key,
            "modelName": model_name,
            "calledMethod": called_method,
            "methodProperties": method_properties or {},
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.api_url, json=body)
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as exc:
            logger.error("Nova Poshta %s.%s timed out", model_name, called_method)
            raise UpstreamServiceError(
                f"Nova Poshta API timed out after {self.timeout}s"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Nova Poshta %s.%s failed: %s", model_name, called_method, exc)
            raise UpstreamServiceError(str(exc) or "Nova Poshta API error") from exc

        if not isinstance(payload, dict):
            raise UpstreamServiceError("Unexpected Nova Poshta response")

        errors = payload.get("errors") or []
        if not payload.get("success") or errors:
            message = errors[0] if errors else "Nova Poshta API error"
            logger.error("Nova Poshta %s.%s rejected: %s", model_name, called_method, message)
            raise UpstreamServiceError(str(message))

        return payload.get("data") or []

    # ---- Address ----

    def search_settlements(self, city_name: str, limit: int = 20) -> list[dict[str, Any]]:
        data = self._request(
            "Address",
            "searchSettlements",
            {"CityName": city_name, "Limit": limit},
        )
        # searchSettlements wraps matches: [{"TotalCount": n, "Addresses": [...]}]
        if data and isinstance(data[0], dict) and "Addresses" in data[0]:
            return data[0]["Addresses"] or []
        return data

    def get_cities(self) -> list[dict[str, Any]]:
        return self._request("Address", "getCities")

    def get_warehouses(self, city_ref: str) -> list[dict[str, Any]]:
        return self._request("Address", "getWarehouses", {"CityRef": city_ref})

    # ---- InternetDocument ----

    def get_document_price(
        self,
        *,
        city_sender: str,
        city_recipient: str,
        weight: float,
        service_type: str,
        cost: float,
        cargo_type: str,
        seats_amount: int,
    ) -> dict[str, Any]:
        data = self._request(
            "InternetDocument",
            "getDocumentPrice",
            {
                "CitySender": city_sender,
                "CityRecipient": city_recipient,
                "Weight": weight,
                "ServiceType": service_type,
                "Cost": cost,
                "CargoType": cargo_type,
                "SeatsAmount": seats_amount,
            },
        )
        if not data:
            raise UpstreamServiceError("Nova Poshta returned no price")
        return data[0]

    # ---- TrackingDocument ----

    def track_document(self, document_number: str) -> list[dict[str, Any]]:
        return self._request(
            "TrackingDocument",
            "getStatusDocuments",
            {"Documents": [{"DocumentNumber": document_number}]},
        )
