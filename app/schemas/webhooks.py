from typing import Optional

from app.models.order import OrderStatus
from app.schemas.common import ApiModel


class WebhookResponse(ApiModel):
    received: bool = True
    order_id: Optional[int] = None
    status: Optional[OrderStatus] = None
    applied: bool = False
    message: str = "Webhook processed successfully"
