# poliprint/core/payment_signature.py
"""
LiqPay data/signature scheme.

    data      = base64(json(payload))
    signature = base64(sha1(private_key + data + private_key))

Only `data` and `signature` cross the wire; the private key never does.
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
from typing import Any

from pydantic import ValidationError

from poliprint.core.errors import InvalidSignatureError, PaymentPayloadError
from poliprint.schemas.payment import PaymentEvent

logger = logging.getLogger(__name__)


def encode_data(payload: dict[str, Any]) -> str:
    raw = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_data(data: str) -> dict[str, Any]:
    """
    Raises:
        PaymentPayloadError: not base64, not UTF-8 JSON, or not an object.
    """
    try:
        decoded = json.loads(base64.b64decode(data, validate=True).decode("utf-8"))
    except (binascii.Error, ValueError) as exc:
        raise PaymentPayloadError(f"Cannot decode payment data: {exc}") from exc
    if not isinstance(decoded, dict):
        raise PaymentPayloadError("Payment data must be a JSON object")
    return decoded


def create_signature(data: str, private_key: str) -> str:
    sign_string = f"{private_key}{data}{private_key}"
    digest = hashlib.sha1(sign_string.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def is_valid_signature(data: str, signature: str, private_key: str) -> bool:
    expected = create_signature(data, private_key)
    return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8"))


def verify_webhook(data: str, signature: str, private_key: str) -> PaymentEvent:
    """
    Check the signature first; only a matching payload is decoded.

    Raises:
        InvalidSignatureError: signature mismatch (fail closed).
        PaymentPayloadError: signature matched but payload is unusable.
    """
    if not is_valid_signature(data, signature, private_key):
        logger.warning("Rejected payment webhook with invalid signature")
        raise InvalidSignatureError("Webhook signature verification failed")

    payload = decode_data(data)
    try:
        return PaymentEvent.model_validate(payload)
    except ValidationError as exc:
        raise PaymentPayloadError(f"Malformed payment event: {exc}") from exc
