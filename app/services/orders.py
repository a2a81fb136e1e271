"""
Order state machine and PIX payment reconciliation.

States: PENDING → COMPLETED | FAILED. Both outcomes are terminal: a trigger that
arrives for a finished order (gateway retries, late webhooks, a second forced
completion) is logged and ignored, which keeps reconciliation idempotent.

Order creation, the gateway call and persisting the gateway transaction id are
separate steps. If the gateway call fails the order is moved to FAILED so no
dangling PENDING order is left behind. The webhook URL carries the local order
id, so a callback that races the transaction id write still finds its order.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from app.config import settings
from app.errors import BadRequestError, ForbiddenError, GatewayError, NotFoundError
from app.integrations import pushinpay
from app.integrations.pushinpay import PixCharge, PushinPayError, WebhookNotification
from app.models.event import Event, EventStatus
from app.models.order import Order, OrderStatus
from app.models.product import Price
from app.models.user import User, UserRole
from app.services import settings as settings_service
from app.counters import force_complete_clicks

logger = logging.getLogger(__name__)

PIX_CURRENCY = "BRL"
BITCOIN_CURRENCY = "USD"
BITCOIN_FEE_PERCENT = Decimal("3")

TRIGGER_PAID = "paid"
TRIGGER_EXPIRED = "expired"
TRIGGER_FORCED = "forced"
TRIGGER_GATEWAY_ERROR = "gateway_error"
TRIGGER_ABANDONED = "abandoned"

# State machine: maps (from_state, trigger) → to_state
TRANSITIONS: Dict[Tuple[OrderStatus, str], OrderStatus] = {
    (OrderStatus.PENDING, TRIGGER_PAID): OrderStatus.COMPLETED,
    (OrderStatus.PENDING, TRIGGER_FORCED): OrderStatus.COMPLETED,
    (OrderStatus.PENDING, TRIGGER_EXPIRED): OrderStatus.FAILED,
    (OrderStatus.PENDING, TRIGGER_GATEWAY_ERROR): OrderStatus.FAILED,
    (OrderStatus.PENDING, TRIGGER_ABANDONED): OrderStatus.FAILED,
}

# Gateway statuses that move an order; anything else is a no-op
GATEWAY_STATUS_TRIGGERS = {
    pushinpay.STATUS_PAID: TRIGGER_PAID,
    pushinpay.STATUS_EXPIRED: TRIGGER_EXPIRED,
}


@dataclass
class PaymentInitiation:
    order: Order
    price: Price
    charge: PixCharge
    expires_at: datetime


@dataclass
class WebhookResult:
    order: Order
    applied: bool


@dataclass
class ForceCompleteResult:
    success: bool
    clicks: int
    clicks_required: int
    order: Order


def _log_event(
    db: Session,
    event_type: str,
    order_id: Optional[int],
    payload: Dict[str, Any],
    status: EventStatus = EventStatus.PROCESSED,
    error_message: Optional[str] = None,
    actor_id: Optional[int] = None,
) -> Event:
    event = Event(
        type=event_type,
        order_id=order_id,
        actor_id=actor_id,
        payload=payload,
        status=status,
        error_message=error_message,
    )
    db.add(event)
    db.flush()
    return event


def transition(db: Session, order: Order, trigger: str) -> Optional[OrderStatus]:
    """
    Apply a trigger to an order. Returns the new status, or None when the
    trigger is not valid from the current state (the order is left untouched).
    Does not commit.
    """
    current = order.status
    target = TRANSITIONS.get((current, trigger))
    if target is None:
        logger.info(
            "Ignoring trigger '%s' for order %s in state %s", trigger, order.id, current.value
        )
        return None

    order.status = target
    if target == OrderStatus.COMPLETED:
        order.download_link = order.price.delivery_link
    logger.info("Order %s: %s → %s (%s)", order.id, current.value, target.value, trigger)
    return target


def format_amount(amount, currency: str) -> str:
    """Human-readable price: 'R$ 1.234,56' for BRL, '$1,234.56' for USD."""
    value = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    currency = currency.upper()
    if currency == "BRL":
        text = f"{value:,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
        return f"R$ {text}"
    if currency == "USD":
        return f"${value:,.2f}"
    return f"{currency} {value:,.2f}"


def webhook_url_for(order: Order) -> str:
    return f"{settings.backend_url.rstrip('/')}/api/payments/webhook?order_id={order.id}"


def _get_purchasable_price(db: Session, price_id: int) -> Price:
    price = db.query(Price).filter(Price.id == price_id).first()
    if price is None:
        raise NotFoundError("Price not found")
    if not price.product.is_active:
        raise BadRequestError("Product is not available")
    return price


def initiate_payment(db: Session, price_id: int, user: User) -> PaymentInitiation:
    """Create a PENDING order for a BRL price and open a PIX charge for it."""
    price = _get_purchasable_price(db, price_id)

    if price.currency.upper() != PIX_CURRENCY:
        raise BadRequestError(
            "PIX payments are only available for BRL prices; use the manual payment flow",
            extra={"currency": price.currency, "manualPayment": True},
        )

    gateway = settings_service.get_payment_gateway(db)
    if gateway not in settings_service.SUPPORTED_GATEWAYS:
        raise BadRequestError(f"Payment gateway '{gateway}' is not available")

    order = Order(user_id=user.id, price_id=price.id, status=OrderStatus.PENDING)
    db.add(order)
    db.commit()
    db.refresh(order)

    value_cents = pushinpay.to_cents(price.amount)
    try:
        charge = pushinpay.create_pix_charge(value_cents, webhook_url_for(order))
    except PushinPayError as e:
        logger.error("PIX charge failed for order %s: %s", order.id, e)
        transition(db, order, TRIGGER_GATEWAY_ERROR)
        _log_event(
            db,
            "pushinpay.charge_failed",
            order.id,
            {"price_id": price.id, "value_cents": value_cents},
            status=EventStatus.FAILED,
            error_message=str(e),
            actor_id=user.id,
        )
        db.commit()
        raise GatewayError("Failed to initiate payment", extra={"orderId": order.id})

    order.pushinpay_tx_id = charge.id
    db.commit()

    expires_at = datetime.now(timezone.utc) + timedelta(minutes=settings.pix_expiration_minutes)
    logger.info("Order %s opened PIX charge %s (%s centavos)", order.id, charge.id, value_cents)
    return PaymentInitiation(order=order, price=price, charge=charge, expires_at=expires_at)


def find_order_for_webhook(
    db: Session, transaction_id: str, order_hint: Optional[int] = None
) -> Optional[Order]:
    """
    Look the order up by gateway transaction id. When that fails and the
    callback URL named an order whose transaction id is not stored yet, bind
    the transaction id to that order.
    """
    order = db.query(Order).filter(Order.pushinpay_tx_id == transaction_id).first()
    if order is not None or order_hint is None:
        return order

    candidate = db.query(Order).filter(Order.id == order_hint).first()
    if candidate is None or candidate.pushinpay_tx_id not in (None, transaction_id):
        return None
    candidate.pushinpay_tx_id = transaction_id
    return candidate


def handle_webhook(
    db: Session, notification: WebhookNotification, order_hint: Optional[int] = None
) -> WebhookResult:
    """Reconcile a gateway callback into the order state machine."""
    order = find_order_for_webhook(db, notification.id, order_hint)
    if order is None:
        logger.warning("Webhook for unknown transaction %s", notification.id)
        raise NotFoundError("Order not found")

    previous = order.status
    trigger = GATEWAY_STATUS_TRIGGERS.get(notification.status)
    new_status = transition(db, order, trigger) if trigger else None

    _log_event(
        db,
        "pushinpay.webhook",
        order.id,
        {
            "transaction_id": notification.id,
            "gateway_status": notification.status,
            "previous_status": previous.value,
            "payload": notification.raw,
        },
        status=EventStatus.PROCESSED if new_status else EventStatus.IGNORED,
    )
    db.commit()
    return WebhookResult(order=order, applied=new_status is not None)


def get_order(db: Session, order_id: int, user: User) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if order is None:
        raise NotFoundError("Order not found")
    if order.user_id != user.id and user.role != UserRole.ADMIN:
        raise ForbiddenError("Access denied")
    return order


def check_gateway_status(transaction_id: str) -> dict:
    """Ask PushinPay directly. PushinPay throttles this to once per minute per id."""
    try:
        return pushinpay.get_transaction(transaction_id)
    except PushinPayError as e:
        logger.error("Status query failed for transaction %s: %s", transaction_id, e)
        raise GatewayError("Failed to check payment status")


def force_complete(db: Session, order_id: int, user: User, counter=force_complete_clicks) -> ForceCompleteResult:
    """
    Count one forced-completion request for the order. Once the server-side
    count reaches the configured threshold the order completes without
    gateway confirmation. Only available while the forced_purchase setting is on.
    """
    order = get_order(db, order_id, user)
    required = counter.limit

    if not settings_service.get_flag(db, settings_service.FORCED_PURCHASE):
        raise ForbiddenError("Forced purchase is disabled")
    if order.status == OrderStatus.COMPLETED:
        return ForceCompleteResult(success=True, clicks=required, clicks_required=required, order=order)
    if order.status == OrderStatus.FAILED:
        raise BadRequestError("Order has already failed")

    clicks = counter.increment(order.id)
    if clicks < required:
        return ForceCompleteResult(success=False, clicks=clicks, clicks_required=required, order=order)

    transition(db, order, TRIGGER_FORCED)
    _log_event(db, "order.force_completed", order.id, {"clicks": clicks}, actor_id=user.id)
    db.commit()
    counter.reset(order.id)
    logger.warning("Order %s force-completed by user %s without payment confirmation", order.id, user.id)
    return ForceCompleteResult(success=True, clicks=clicks, clicks_required=required, order=order)


def bitcoin_instructions(db: Session, price_id: int) -> dict:
    """Manual payment details for USD prices (paid in BTC plus a fixed fee)."""
    price = _get_purchasable_price(db, price_id)
    if price.currency.upper() != BITCOIN_CURRENCY:
        raise BadRequestError("Bitcoin payments are only available for USD prices")

    wallet = settings_service.get_setting(db, settings_service.BTC_WALLET_ADDRESS)
    if not wallet:
        raise BadRequestError("Bitcoin payments are not configured")

    amount = Decimal(str(price.amount))
    fee = (amount * BITCOIN_FEE_PERCENT / 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return {
        "price_id": price.id,
        "product_name": price.product.name,
        "category": price.category,
        "amount_usd": amount,
        "fee_percent": BITCOIN_FEE_PERCENT,
        "total_usd": amount + fee,
        "wallet_address": wallet,
        "support_telegram": settings_service.get_setting(db, settings_service.SUPPORT_TELEGRAM) or "",
    }


def _reconcile_order(db: Session, order: Order) -> Optional[OrderStatus]:
    """Settle one stale PENDING order; returns the new status or None."""
    if not order.pushinpay_tx_id:
        trigger = TRIGGER_ABANDONED
        gateway_status = None
    else:
        data = pushinpay.get_transaction(order.pushinpay_tx_id)
        gateway_status = str(data.get("status", "")).lower()
        trigger = GATEWAY_STATUS_TRIGGERS.get(gateway_status)

    new_status = transition(db, order, trigger) if trigger else None
    if new_status is not None:
        _log_event(
            db,
            "order.reconciled",
            order.id,
            {"trigger": trigger, "gateway_status": gateway_status},
        )
    return new_status


def reconcile_pending_orders(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
    """
    Sweep PENDING orders whose PIX charge should have expired. Each is queried
    at PushinPay once; paid charges complete, expired ones fail, and orders that
    never got a transaction id are failed as abandoned.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(minutes=settings.pix_expiration_minutes + settings.reconcile_grace_minutes)
    pending = (
        db.query(Order)
        .filter(Order.status == OrderStatus.PENDING, Order.created_at < cutoff)
        .all()
    )

    summary = {"checked": 0, "completed": 0, "failed": 0, "unchanged": 0, "errors": 0}
    for order in pending:
        summary["checked"] += 1
        # Per-order failures are counted; the rest of the sweep still commits
        try:
            new_status = _reconcile_order(db, order)
        except PushinPayError as e:
            logger.warning("Reconcile: status query failed for order %s: %s", order.id, e)
            summary["errors"] += 1
            continue
        except Exception:
            logger.exception("Reconcile: unexpected error for order %s", order.id)
            summary["errors"] += 1
            continue

        if new_status is None:
            summary["unchanged"] += 1
        elif new_status == OrderStatus.COMPLETED:
            summary["completed"] += 1
        else:
            summary["failed"] += 1

    db.commit()
    logger.info("Pending order sweep: %s", summary)
    return summary
