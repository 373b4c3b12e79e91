"""Payment gateway port and the Toss Payments HTTP adapter.

The reconciler only talks to PaymentGateway.confirm. Any failure (missing
secret, transport error/timeout, non-2xx answer) raises before anything is
written locally, so the surrounding transaction rolls back untouched.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import httpx
import structlog

from shared.errors import GatewayNotConfigured, GatewayRejected, GatewayUnavailable

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class GatewayConfirmation:
    """Accepted confirmation as reported by the gateway."""

    payment_key: str
    method: Optional[str] = None
    approved_at: Optional[datetime] = None


def _parse_timestamp(value) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        logger.warning("gateway_timestamp_unparseable", value=value)
        return None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    async def confirm(self, payment_key: str, order_id: int, amount: int) -> GatewayConfirmation:
        """Ask the gateway to capture an authorised payment."""
        ...

    async def aclose(self) -> None:
        return None


class TossPaymentsGateway(PaymentGateway):
    """POST {paymentKey, orderId, amount} to <api_url>/confirm with Basic auth (secret as username)."""

    def __init__(
        self,
        secret_key: Optional[str],
        api_url: str = "https://api.tosspayments.com/v1/payments",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key
        self._client = httpx.AsyncClient(base_url=api_url, timeout=timeout, transport=transport)

    async def confirm(self, payment_key: str, order_id: int, amount: int) -> GatewayConfirmation:
        if not self.secret_key:
            raise GatewayNotConfigured()

        payload = {"paymentKey": payment_key, "orderId": str(order_id), "amount": int(amount)}
        try:
            resp = await self._client.post("/confirm", json=payload, auth=(self.secret_key, ""))
        except httpx.HTTPError as exc:
            logger.error("gateway_unreachable", order_id=order_id, error=repr(exc))
            raise GatewayUnavailable(str(exc) or exc.__class__.__name__) from exc

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if resp.is_error:
            logger.warning(
                "gateway_rejected",
                order_id=order_id,
                status_code=resp.status_code,
                code=body.get("code"),
            )
            raise GatewayRejected(resp.status_code, body.get("code"), body.get("message"))

        return GatewayConfirmation(
            payment_key=body.get("paymentKey") or payment_key,
            method=body.get("method"),
            approved_at=_parse_timestamp(body.get("approvedAt")),
        )

    async def aclose(self) -> None:
        await self._client.aclose()
