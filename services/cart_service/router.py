from fastapi import APIRouter, Depends, Request

from shared.security import CurrentUser, get_current_user

from .schemas import CartItemCreate, CartItemResponse, CartItemUpdate, CartResponse, ClearCartResponse
from .service import CartService


def get_cart_service(request: Request) -> CartService:
    return CartService(request.app.state.db)


# Every cart endpoint acts on the authenticated caller's own cart
router = APIRouter(prefix="/api/cart", tags=["Cart"])


@router.get("", response_model=CartResponse)
async def view_cart(
    user: CurrentUser = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    cart = await service.view(user.id)
    return CartResponse(items=cart.items, total_price=cart.total_price, count=cart.count)


@router.post("", response_model=CartItemResponse, status_code=201)
async def add_item(
    payload: CartItemCreate,
    user: CurrentUser = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    return await service.add_item(user.id, payload.product_id, payload.quantity)


@router.put("/{cart_item_id}", response_model=CartItemResponse)
async def update_item(
    cart_item_id: int,
    payload: CartItemUpdate,
    user: CurrentUser = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    return await service.update_quantity(user.id, cart_item_id, payload.quantity)


@router.delete("/{cart_item_id}")
async def remove_item(
    cart_item_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    await service.remove_item(user.id, cart_item_id)
    return {"message": "Item removed"}


@router.delete("", response_model=ClearCartResponse)
async def clear_cart(
    user: CurrentUser = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    deleted = await service.clear(user.id)
    return ClearCartResponse(deleted_count=deleted, message="Cart cleared")
