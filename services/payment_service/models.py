from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from shared.config.database import Base


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    payment_key = Column(String(200), nullable=False, unique=True, index=True)  # issued by the gateway
    method = Column(String(50), nullable=True)
    amount = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="done")  # done, cancelled, failed
    approved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
