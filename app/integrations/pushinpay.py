"""
PushinPay PIX gateway client.

Charges: POST {api_base}/pix/cashIn with the value in centavos and a webhook URL.
Status: GET {api_base}/transactions/{id} (PushinPay allows one query per minute per id).
Webhook auth: HMAC-SHA256 of the raw body with the shared secret, hex digest in
the X-PushinPay-Signature header.
"""
import hashlib
import hmac
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import httpx

from app.config import settings

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-PushinPay-Signature"

# Transaction statuses reported by PushinPay
STATUS_CREATED = "created"
STATUS_PAID = "paid"
STATUS_EXPIRED = "expired"


class PushinPayError(Exception):
    """Raised when a PushinPay call fails or returns an unusable response"""


@dataclass
class PixCharge:
    """A created PIX charge with the fields the checkout page needs"""
    id: str
    qr_code: str
    qr_code_base64: str
    status: str
    value_cents: int
    raw: dict


@dataclass
class WebhookNotification:
    """Parsed webhook body: which transaction changed and its new status"""
    id: str
    status: str
    value_cents: Optional[int]
    raw: dict


def to_cents(amount) -> int:
    """Convert a decimal amount to integer centavos, rounding half up."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _headers() -> dict:
    return {
        "Authorization": f"Bearer {settings.pushinpay_api_token}",
        "Accept": "application/json",
        "Content-Type": "application/json",
    }


def _json_object(resp) -> dict:
    """Decode a response body that must be a JSON object."""
    try:
        data = resp.json()
    except ValueError as e:
        raise PushinPayError("PushinPay returned a non-JSON body") from e
    if not isinstance(data, dict):
        raise PushinPayError("PushinPay returned an unexpected JSON body")
    return data


def create_pix_charge(value_cents: int, webhook_url: str) -> PixCharge:
    """Create a PIX charge. Raises PushinPayError on any failure."""
    if not settings.pushinpay_api_token:
        raise PushinPayError("PushinPay API token not configured")
    if value_cents <= 0:
        raise PushinPayError(f"Invalid charge value: {value_cents}")

    url = f"{settings.pushinpay_api_base}/pix/cashIn"
    payload = {"value": value_cents, "webhook_url": webhook_url}

    try:
        with httpx.Client(timeout=settings.pushinpay_timeout_seconds) as client:
            resp = client.post(url, headers=_headers(), json=payload)
    except httpx.HTTPError as e:
        raise PushinPayError(f"PushinPay request failed: {e}") from e

    if resp.status_code not in (200, 201):
        logger.error("PushinPay cashIn failed: %s %s", resp.status_code, resp.text)
        raise PushinPayError(f"PushinPay returned HTTP {resp.status_code}")

    data = _json_object(resp)
    if not data.get("id") or not data.get("qr_code"):
        logger.error("PushinPay cashIn response missing fields: %s", data)
        raise PushinPayError("PushinPay response missing transaction id or PIX code")

    try:
        return PixCharge(
            id=str(data["id"]),
            qr_code=str(data["qr_code"]),
            qr_code_base64=str(data.get("qr_code_base64") or ""),
            status=str(data.get("status", STATUS_CREATED)).lower(),
            value_cents=int(data.get("value", value_cents)),
            raw=data,
        )
    except (TypeError, ValueError) as e:
        raise PushinPayError(f"PushinPay cashIn response is malformed: {e}") from e


def get_transaction(transaction_id: str) -> dict:
    """Fetch a transaction as reported by PushinPay. Raises PushinPayError on failure."""
    if not settings.pushinpay_api_token:
        raise PushinPayError("PushinPay API token not configured")

    url = f"{settings.pushinpay_api_base}/transactions/{transaction_id}"
    try:
        with httpx.Client(timeout=settings.pushinpay_timeout_seconds) as client:
            resp = client.get(url, headers=_headers())
    except httpx.HTTPError as e:
        raise PushinPayError(f"PushinPay request failed: {e}") from e

    if resp.status_code == 404:
        raise PushinPayError(f"Transaction {transaction_id} not found at PushinPay")
    if resp.status_code == 429:
        raise PushinPayError("PushinPay rate limit reached; query at most once per minute")
    if resp.status_code != 200:
        logger.error("PushinPay status query failed: %s %s", resp.status_code, resp.text)
        raise PushinPayError(f"PushinPay returned HTTP {resp.status_code}")

    return _json_object(resp)


def sign_payload(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_webhook_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    """Constant-time check of the webhook HMAC. Fails closed without a secret."""
    if not signature or not secret:
        return False
    return hmac.compare_digest(sign_payload(body, secret), signature.strip().lower())


def parse_webhook(payload: dict) -> Optional[WebhookNotification]:
    """Extract the transaction id and status; None when either is missing."""
    tx_id = payload.get("id")
    status = payload.get("status")
    if not tx_id or not status:
        logger.warning("PushinPay webhook missing id or status: %s", payload)
        return None

    value = payload.get("value")
    try:
        value_cents = int(value) if value is not None else None
    except (TypeError, ValueError):
        value_cents = None

    return WebhookNotification(
        id=str(tx_id),
        status=str(status).lower(),
        value_cents=value_cents,
        raw=payload,
    )
