from dataclasses import dataclass

import structlog

from shared.config.database import Database
from shared.errors import CartItemNotFound, InsufficientStock, ProductNotFound

from services.product_service.repository import ProductRepository

from .models import CartItem
from .repository import CartLine, CartRepository

logger = structlog.get_logger(__name__)


@dataclass
class CartView:
    items: list[CartLine]

    @property
    def total_price(self) -> int:
        return sum(line.line_total for line in self.items)

    @property
    def count(self) -> int:
        return len(self.items)


class CartService:

    def __init__(self, db: Database):
        self.db = db

    async def snapshot(self, user_id: int) -> list[CartLine]:
        """Live cart joined with current product state. Read-only, no locks."""
        async with self.db.session() as session:
            return await CartRepository.snapshot(session, user_id)

    async def view(self, user_id: int) -> CartView:
        return CartView(items=await self.snapshot(user_id))

    async def add_item(self, user_id: int, product_id: int, quantity: int = 1) -> CartItem:
        async with self.db.transaction() as session:
            locked = await ProductRepository.lock_products(session, [product_id])
            if not locked or not locked[0].is_active:
                raise ProductNotFound(product_id)
            product = locked[0]

            existing = await CartRepository.get_item(session, user_id, product_id)
            in_cart = existing.quantity if existing else 0
            if in_cart + quantity > product.stock:
                raise InsufficientStock(product_id, product.stock, quantity, name=product.name, in_cart=in_cart)

            item = await CartRepository.merge_quantity(session, user_id, product_id, quantity)
        logger.info("cart_item_added", user_id=user_id, product_id=product_id, quantity=item.quantity)
        return item

    async def update_quantity(self, user_id: int, cart_item_id: int, quantity: int) -> CartItem:
        async with self.db.transaction() as session:
            item = await CartRepository.get_owned_item(session, user_id, cart_item_id)
            if item is None:
                raise CartItemNotFound(cart_item_id)
            product = item.product
            if quantity > product.stock:
                raise InsufficientStock(product.id, product.stock, quantity, name=product.name)
            item.quantity = quantity
        return item

    async def remove_item(self, user_id: int, cart_item_id: int) -> None:
        async with self.db.transaction() as session:
            if not await CartRepository.remove_item(session, user_id, cart_item_id):
                raise CartItemNotFound(cart_item_id)

    async def clear(self, user_id: int) -> int:
        async with self.db.transaction() as session:
            deleted = await CartRepository.clear_cart(session, user_id)
        logger.info("cart_cleared", user_id=user_id, deleted=deleted)
        return deleted
