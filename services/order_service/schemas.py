from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from services.payment_service.schemas import PaymentResponse

from .lifecycle import OrderStatus


class OrderCreate(BaseModel):
    shipping_address: Optional[str] = Field(default=None, max_length=500)


class StatusChange(BaseModel):
    status: OrderStatus


class OrderItemResponse(BaseModel):
    product_id: int
    name: str
    quantity: int
    price: int

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: int
    user_id: int
    total_amount: int
    status: str
    shipping_address: Optional[str]
    created_at: Optional[datetime]
    items: List[OrderItemResponse] = []

    class Config:
        from_attributes = True


class OrderSummary(BaseModel):
    id: int
    user_id: int
    total_amount: int
    status: str
    shipping_address: Optional[str]
    created_at: Optional[datetime]
    item_count: int

    class Config:
        from_attributes = True


class OrderList(BaseModel):
    orders: List[OrderSummary]


class Pagination(BaseModel):
    page: int
    limit: int
    total_count: int
    total_pages: int


class AdminOrderList(BaseModel):
    orders: List[OrderSummary]
    pagination: Pagination


class AdminOrderDetail(OrderResponse):
    payments: List[PaymentResponse] = []


class AdminStats(BaseModel):
    total_orders: int
    total_revenue: int
    active_products: int
    orders_by_status: dict[str, int]
