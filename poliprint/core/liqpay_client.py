# poliprint/core/liqpay_client.py
"""
Server-to-server calls to the LiqPay API (`status`, `refund`).

Requests are form-encoded `data` + `signature`, signed with the same
scheme as checkout forms and webhooks.
"""

import logging
from typing import Any

import httpx

from poliprint.core.errors import UpstreamServiceError
from poliprint.core.payment_signature import create_signature, encode_data

logger = logging.getLogger(__name__)

API_VERSION = 3


class LiqPayClient:
    def __init__(
        self,
        public_key: str,
        private_key: str,
        api_url: str,
        timeout: float,
        transport: httpx.BaseTransport | None = None,
    ):
        self.public_key = public_key
        self.private_key = private_key
        self.api_url = api_url.rstrip("/") + "/"
        self.timeout = timeout
        self._transport = transport

    def request(self, action: str, params: dict[str, Any]) -> dict[str, Any]:
        payload = {
            "version": API_VERSION,
            "public_key": self.public_key,
            "action": action,
            **params,
        }
        data = encode_data(payload)
        form = {"data": data, "signature": create_signature(data, self.private_key)}

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.api_url + "request", data=form)
            response.raise_for_status()
            result = response.json()
        except httpx.TimeoutException as exc:
            logger.error("LiqPay %s timed out", action)
            raise UpstreamServiceError(f"LiqPay API timed out after {self.timeout}s") from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("LiqPay %s failed: %s", action, exc)
            raise UpstreamServiceError(str(exc) or "LiqPay API error") from exc

        if not isinstance(result, dict):
            raise UpstreamServiceError("Unexpected LiqPay response")
        return result
