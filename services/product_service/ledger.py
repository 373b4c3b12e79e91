"""
Inventory ledger: every reservation and restore of Product.stock goes through here.

Both operations run inside the caller's transaction and never commit, so a
multi-line reservation either lands completely or is rolled back with the
rest of the caller's writes.
"""
from typing import Iterable, Tuple

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import InsufficientStock, ProductInactive, ProductNotFound, ValidationError

from .repository import ProductRepository

logger = structlog.get_logger(__name__)


def _check_quantity(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("Quantity must be a positive integer", quantity=quantity)


class InventoryLedger:

    @staticmethod
    async def reserve(db: AsyncSession, product_id: int, quantity: int) -> None:
        _check_quantity(quantity)
        if await ProductRepository.decrement_stock(db, product_id, quantity):
            logger.debug("stock_reserved", product_id=product_id, quantity=quantity)
            return

        # Work out why the guarded decrement matched nothing.
        product = await ProductRepository.reload(db, product_id)
        if product is None:
            raise ProductNotFound(product_id)
        if not product.is_active:
            raise ProductInactive(product_id, product.name)
        raise InsufficientStock(product_id, product.stock, quantity, name=product.name)

    @staticmethod
    async def restore(db: AsyncSession, product_id: int, quantity: int) -> None:
        # No upper bound: callers only restore what an order reserved.
        _check_quantity(quantity)
        if not await ProductRepository.increment_stock(db, product_id, quantity):
            raise ProductNotFound(product_id)
        logger.debug("stock_restored", product_id=product_id, quantity=quantity)

    @staticmethod
    async def restore_many(db: AsyncSession, lines: Iterable[Tuple[int, int]]) -> int:
        """Restore (product_id, quantity) pairs, locking rows in id order first.

        Returns the total number of units put back.
        """
        totals: dict[int, int] = {}
        for product_id, quantity in lines:
            totals[product_id] = totals.get(product_id, 0) + quantity
        if not totals:
            return 0

        await ProductRepository.lock_products(db, list(totals))
        for product_id in sorted(totals):
            await InventoryLedger.restore(db, product_id, totals[product_id])
        return sum(totals.values())
