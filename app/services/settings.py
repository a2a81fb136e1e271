"""Key/value operator settings stored in the database."""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.models.setting import Setting

logger = logging.getLogger(__name__)

SUPPORT_TELEGRAM = "support_telegram"
TELEGRAM_SUPPORT_LINK = "telegram_support_link"
BTC_WALLET_ADDRESS = "btc_wallet_address"
PAYMENT_GATEWAY = "payment_gateway"
BLACK_FRIDAY_PROMO = "black_friday_promo"
FORCED_PURCHASE = "forced_purchase"

DEFAULT_PAYMENT_GATEWAY = "pushinpay"
SUPPORTED_GATEWAYS = {DEFAULT_PAYMENT_GATEWAY}

# Readable without authentication
PUBLIC_KEYS = frozenset({
    SUPPORT_TELEGRAM,
    TELEGRAM_SUPPORT_LINK,
    BTC_WALLET_ADDRESS,
    PAYMENT_GATEWAY,
    BLACK_FRIDAY_PROMO,
    FORCED_PURCHASE,
})


def get_setting(db: Session, key: str, default: Optional[str] = None) -> Optional[str]:
    row = db.query(Setting).filter(Setting.key == key).first()
    if row is None:
        return default
    return row.value


def get_flag(db: Session, key: str) -> bool:
    """Boolean settings are stored as the strings 'true' / 'false'."""
    value = get_setting(db, key)
    return value is not None and value.strip().lower() == "true"


def set_setting(db: Session, key: str, value: str) -> Setting:
    """Insert or update a setting and commit."""
    row = db.query(Setting).filter(Setting.key == key).first()
    if row is None:
        row = Setting(key=key, value=value)
        db.add(row)
    else:
        row.value = value
    db.commit()
    db.refresh(row)
    logger.info("Setting %s updated", key)
    return row


def get_payment_gateway(db: Session) -> str:
    return (get_setting(db, PAYMENT_GATEWAY) or DEFAULT_PAYMENT_GATEWAY).strip().lower()


def public_settings(db: Session) -> dict:
    """Settings the storefront reads without a session."""
    return {
        "support_telegram": get_setting(db, SUPPORT_TELEGRAM) or "",
        "telegram_support_link": get_setting(db, TELEGRAM_SUPPORT_LINK) or "",
        "btc_wallet_address": get_setting(db, BTC_WALLET_ADDRESS) or "",
        "payment_gateway": get_payment_gateway(db),
        "black_friday_promo": get_flag(db, BLACK_FRIDAY_PROMO),
        "forced_purchase": get_flag(db, FORCED_PURCHASE),
    }
