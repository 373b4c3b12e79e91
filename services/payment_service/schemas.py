from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, Field


class PaymentConfirm(BaseModel):
    payment_key: str = Field(alias="paymentKey", min_length=1)
    order_id: Union[int, str] = Field(alias="orderId")
    amount: int

    class Config:
        populate_by_name = True


class WebhookData(BaseModel):
    payment_key: Optional[str] = Field(default=None, alias="paymentKey")
    status: Optional[str] = None
    order_id: Optional[Union[int, str]] = Field(default=None, alias="orderId")

    class Config:
        populate_by_name = True
        extra = "allow"


# The gateway retries anything that is not a 2xx
class WebhookEvent(BaseModel):
    event_type: str = Field(default="", alias="eventType")
    data: Optional[WebhookData] = None

    class Config:
        populate_by_name = True
        extra = "allow"


class PaymentResponse(BaseModel):
    id: int
    order_id: int
    payment_key: str
    method: Optional[str]
    amount: int
    status: str
    approved_at: Optional[datetime]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class PaymentConfirmResponse(BaseModel):
    message: str
    payment: PaymentResponse


class WebhookAck(BaseModel):
    success: bool = True
