from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from shared.security import CurrentUser, get_current_user, require_admin

from services.payment_service.schemas import PaymentResponse

from .lifecycle import OrderStatus
from .schemas import (
    AdminOrderDetail,
    AdminOrderList,
    AdminStats,
    OrderCreate,
    OrderList,
    OrderResponse,
    StatusChange,
)
from .service import AdminOrderService, OrderService


def get_order_service(request: Request) -> OrderService:
    return OrderService(request.app.state.db)


def get_admin_order_service(request: Request) -> AdminOrderService:
    return AdminOrderService(request.app.state.db)


router = APIRouter(prefix="/api/orders", tags=["Orders"])
admin_router = APIRouter(prefix="/api/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


@router.get("", response_model=OrderList)
async def list_orders(
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    return {"orders": await service.list_orders(user.id)}


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    return await service.get_order(user.id, order_id)


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    payload: Optional[OrderCreate] = None,
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    shipping_address = payload.shipping_address if payload else None
    return await service.create_order(user.id, shipping_address)


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = await service.cancel_order(user.id, order_id)
    return {"message": "Order cancelled", "order_id": order.id, "status": order.status}


# --- ADMIN ---

@admin_router.get("/stats", response_model=AdminStats)
async def stats(service: AdminOrderService = Depends(get_admin_order_service)):
    return await service.stats()


@admin_router.get("/orders", response_model=AdminOrderList)
async def admin_list_orders(
    status: Optional[OrderStatus] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    service: AdminOrderService = Depends(get_admin_order_service),
):
    return await service.list_orders(status, page, limit)


@admin_router.get("/orders/{order_id}", response_model=AdminOrderDetail)
async def admin_get_order(order_id: int, service: AdminOrderService = Depends(get_admin_order_service)):
    order, payments = await service.get_order(order_id)
    detail = AdminOrderDetail.model_validate(order)
    detail.payments = [PaymentResponse.model_validate(payment) for payment in payments]
    return detail


@admin_router.put("/orders/{order_id}/status", response_model=OrderResponse)
async def change_status(
    order_id: int,
    payload: StatusChange,
    service: AdminOrderService = Depends(get_admin_order_service),
):
    return await service.change_status(order_id, payload.status)
