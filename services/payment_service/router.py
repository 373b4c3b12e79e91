from fastapi import APIRouter, Depends, Request

from shared.security import CurrentUser, get_current_user

from .schemas import PaymentConfirm, PaymentConfirmResponse, PaymentResponse, WebhookAck, WebhookEvent
from .service import PaymentService


def get_payment_service(request: Request) -> PaymentService:
    return PaymentService(request.app.state.db, request.app.state.gateway)


router = APIRouter(prefix="/api/payments", tags=["Payments"])


@router.post("/confirm", response_model=PaymentConfirmResponse)
async def confirm_payment(
    payload: PaymentConfirm,
    user: CurrentUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    payment = await service.confirm(user.id, payload.payment_key, payload.order_id, payload.amount)
    return {"message": "Payment confirmed", "payment": payment}


# Called by the gateway, not by a logged-in user
@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(event: WebhookEvent, service: PaymentService = Depends(get_payment_service)):
    await service.handle_webhook(event)
    return WebhookAck()


@router.get("/{order_id}", response_model=PaymentResponse)
async def get_payment(
    order_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    return await service.get_payment(user.id, order_id)
