from datetime import datetime
from typing import List, Optional

from app.models.order import OrderStatus
from app.models.user import UserRole
from app.schemas.common import ApiModel


class InitiatePaymentRequest(ApiModel):
    price_id: int


class OrderProductSummary(ApiModel):
    id: int
    name: str
    image_url: Optional[str] = None


class OrderPriceSummary(ApiModel):
    id: int
    category: str
    amount: float
    currency: str


class OrderPriceDetail(OrderPriceSummary):
    product: Optional[OrderProductSummary] = None


class PaymentInitiationResponse(ApiModel):
    message: str = "Payment initiated successfully"
    order_id: int
    transaction_id: str
    pix_code: str
    pix_qr_code_base64: str
    amount: str
    amount_cents: int
    currency: str
    expires_at: datetime
    product: OrderProductSummary
    price: OrderPriceSummary


class OrderResponse(ApiModel):
    id: int
    user_id: int
    price_id: int
    status: OrderStatus
    pushinpay_tx_id: Optional[str] = None
    download_link: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    price: Optional[OrderPriceDetail] = None


class OrderEnvelope(ApiModel):
    order: OrderResponse


class ForceCompleteResponse(ApiModel):
    success: bool
    clicks: int
    clicks_required: int
    order: OrderResponse


class BitcoinPaymentResponse(ApiModel):
    price_id: int
    product_name: str
    category: str
    amount_usd: float
    fee_percent: float
    total_usd: float
    wallet_address: str
    support_telegram: str = ""


class OrderUserSummary(ApiModel):
    id: int
    email: str
    role: UserRole


class AdminOrderResponse(OrderResponse):
    user: Optional[OrderUserSummary] = None


class AdminOrderListResponse(ApiModel):
    orders: List[AdminOrderResponse]
