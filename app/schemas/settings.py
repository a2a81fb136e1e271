"""Schemas for key/value settings and the storefront popup."""
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from app.schemas.common import ApiModel


class SettingUpdate(ApiModel):
    value: str = Field(..., min_length=1)


class SettingResponse(ApiModel):
    key: str
    value: str
    updated_at: Optional[datetime] = None


class SettingEnvelope(ApiModel):
    setting: SettingResponse


class SettingListResponse(ApiModel):
    settings: List[SettingResponse]


class PublicSettingsResponse(ApiModel):
    support_telegram: str = ""
    telegram_support_link: str = ""
    btc_wallet_address: str = ""
    payment_gateway: str = "pushinpay"
    black_friday_promo: bool = False
    forced_purchase: bool = False


class PopupConfigUpdate(ApiModel):
    message: str = Field(..., min_length=1)
    button_text: str = Field(..., min_length=1, max_length=255)
    button_link: str = Field(..., min_length=1, max_length=1024)
    is_active: bool = True


class PopupConfigResponse(ApiModel):
    id: int
    message: str
    button_text: str
    button_link: str
    is_active: bool


class PopupEnvelope(ApiModel):
    popup: Optional[PopupConfigResponse] = None
