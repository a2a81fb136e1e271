"""
PIX checkout, order status and the PushinPay webhook receiver.
"""
import json
import logging
from typing import Optional
from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.auth.dependencies import get_current_user
from app.config import settings
from app.database import get_db
from app.errors import NotFoundError
from app.integrations import pushinpay
from app.models.user import User
from app.schemas.payments import (
    BitcoinPaymentResponse,
    ForceCompleteResponse,
    InitiatePaymentRequest,
    OrderEnvelope,
    OrderPriceSummary,
    OrderProductSummary,
    OrderResponse,
    PaymentInitiationResponse,
)
from app.schemas.webhooks import WebhookResponse
from app.services import orders

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["Payments"])


def _decode_payload(content_type: str, body: bytes) -> dict:
    """PushinPay posts either JSON or a url-encoded form."""
    if "application/x-www-form-urlencoded" in content_type:
        try:
            return dict(parse_qsl(body.decode("utf-8"), keep_blank_values=True))
        except UnicodeDecodeError:
            return {}
    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


@router.post("/initiate-payment", response_model=PaymentInitiationResponse)
def initiate_payment(
    data: InitiatePaymentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Create a PENDING order and return the PIX code for it"""
    result = orders.initiate_payment(db, data.price_id, current_user)
    price = result.price
    return PaymentInitiationResponse(
        order_id=result.order.id,
        transaction_id=result.charge.id,
        pix_code=result.charge.qr_code,
        pix_qr_code_base64=result.charge.qr_code_base64,
        amount=orders.format_amount(price.amount, price.currency),
        amount_cents=result.charge.value_cents,
        currency=price.currency,
        expires_at=result.expires_at,
        product=OrderProductSummary.model_validate(price.product),
        price=OrderPriceSummary.model_validate(price),
    )


@router.post("/webhook", response_model=WebhookResponse)
async def pushinpay_webhook(
    request: Request,
    order_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """
    Receive PushinPay status notifications.
    Answers 200 whenever the order was found so the gateway stops retrying.
    """
    body = await request.body()
    signature = request.headers.get(pushinpay.SIGNATURE_HEADER)
    if not pushinpay.verify_webhook_signature(body, signature, settings.pushinpay_webhook_secret):
        logger.warning("Rejected PushinPay webhook with invalid signature")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook signature")

    payload = _decode_payload(request.headers.get("content-type", ""), body)
    notification = pushinpay.parse_webhook(payload)
    if notification is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload")

    # Unknown orders answer 404; every other outcome is acknowledged
    try:
        result = orders.handle_webhook(db, notification, order_hint=order_id)
    except NotFoundError:
        raise
    except Exception:
        db.rollback()
        logger.exception("Failed to process webhook for transaction %s", notification.id)
        return WebhookResponse(applied=False, message="Webhook received but could not be processed")

    return WebhookResponse(
        order_id=result.order.id,
        status=result.order.status,
        applied=result.applied,
    )


@router.get("/order/{order_id}", response_model=OrderEnvelope)
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Order status for its owner or an admin"""
    order = orders.get_order(db, order_id, current_user)
    return OrderEnvelope(order=OrderResponse.model_validate(order))


@router.post("/order/{order_id}/force-complete", response_model=ForceCompleteResponse)
def force_complete_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Count a forced-completion request; completes the order at the threshold"""
    result = orders.force_complete(db, order_id, current_user)
    return ForceCompleteResponse(
        success=result.success,
        clicks=result.clicks,
        clicks_required=result.clicks_required,
        order=OrderResponse.model_validate(result.order),
    )


@router.get("/check-status/{transaction_id}")
def check_status(
    transaction_id: str,
    current_user: User = Depends(get_current_user),
):
    """Pass-through status query to PushinPay"""
    return orders.check_gateway_status(transaction_id)


@router.get("/bitcoin/{price_id}", response_model=BitcoinPaymentResponse)
def bitcoin_payment(
    price_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Manual payment instructions for USD prices"""
    return BitcoinPaymentResponse(**orders.bitcoin_instructions(db, price_id))
