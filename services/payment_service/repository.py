from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Payment


class PaymentRepository:
    @staticmethod
    async def create_payment(db: AsyncSession, payment: Payment) -> Payment:
        db.add(payment)
        await db.flush()
        return payment

    @staticmethod
    async def lock_by_key(db: AsyncSession, payment_key: str) -> Optional[Payment]:
        result = await db.execute(
            select(Payment)
            .where(Payment.payment_key == payment_key)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def list_for_order(db: AsyncSession, order_id: int) -> list[Payment]:
        result = await db.execute(
            select(Payment).where(Payment.order_id == order_id).order_by(Payment.id)
        )
        return list(result.scalars().all())
