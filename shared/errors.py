"""
Error taxonomy shared by every service.

Services raise these; the FastAPI handlers registered in main.py render them as
{"error": <code>, "message": <text>, ...details}. Anything raised inside a
Database.transaction() block rolls the whole transaction back first.
"""
from typing import Any


class AppError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, **self.details}


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"


class ExternalServiceError(AppError):
    status_code = 502
    code = "EXTERNAL_SERVICE_ERROR"


class InternalError(AppError):
    status_code = 500
    code = "INTERNAL_ERROR"


# --- NOT FOUND ---

class OrderNotFound(NotFoundError):
    code = "ORDER_NOT_FOUND"

    def __init__(self, order_id):
        super().__init__(f"Order {order_id} not found", order_id=order_id)


class ProductNotFound(NotFoundError):
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id):
        super().__init__(f"Product {product_id} not found", product_id=product_id)


class CartItemNotFound(NotFoundError):
    code = "CART_ITEM_NOT_FOUND"

    def __init__(self, cart_item_id):
        super().__init__(f"Cart item {cart_item_id} not found", cart_item_id=cart_item_id)


class PaymentNotFound(NotFoundError):
    code = "PAYMENT_NOT_FOUND"

    def __init__(self, order_id):
        super().__init__(f"No payment recorded for order {order_id}", order_id=order_id)


class Forbidden(NotFoundError):
    """The entity exists but belongs to someone else."""

    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "You do not have access to this resource", **details: Any):
        super().__init__(message, **details)


# --- CONFLICTS ---

class EmptyCart(ConflictError):
    code = "EMPTY_CART"

    def __init__(self):
        super().__init__("Cart is empty")


class ProductInactive(ConflictError):
    code = "PRODUCT_INACTIVE"

    def __init__(self, product_id, name: str | None = None):
        label = f'"{name}"' if name else f"Product {product_id}"
        super().__init__(f"{label} is not available for sale", product_id=product_id)


class InsufficientStock(ConflictError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id, stock: int, requested: int, name: str | None = None, in_cart: int | None = None):
        label = f'"{name}"' if name else f"Product {product_id}"
        details = {"product_id": product_id, "stock": stock, "requested": requested}
        if in_cart is not None:
            details["in_cart"] = in_cart
        super().__init__(f"Insufficient stock for {label} (stock: {stock}, requested: {requested})", **details)


class IllegalTransition(ConflictError):
    code = "ILLEGAL_TRANSITION"

    def __init__(self, current: str, target: str, allowed: list[str]):
        super().__init__(
            f"Transition {current} -> {target} is not allowed",
            current=current,
            target=target,
            allowed=allowed,
        )


class OrderNotPending(ConflictError):
    code = "ORDER_NOT_PENDING"

    def __init__(self, order_id, status: str):
        super().__init__(
            f"Order {order_id} has already been processed (status: {status})",
            order_id=order_id,
            status=status,
        )


class AmountMismatch(ConflictError):
    code = "AMOUNT_MISMATCH"

    def __init__(self, order_id, expected: int, received: int):
        super().__init__(
            "Payment amount does not match the order total",
            order_id=order_id,
            expected=expected,
            received=received,
        )


# --- PAYMENT GATEWAY ---

class GatewayNotConfigured(ExternalServiceError):
    status_code = 500
    code = "GATEWAY_NOT_CONFIGURED"

    def __init__(self):
        super().__init__("Payment service is not configured")


class GatewayUnavailable(ExternalServiceError):
    code = "GATEWAY_UNAVAILABLE"

    def __init__(self, reason: str):
        super().__init__("Payment gateway could not be reached", reason=reason)


class GatewayRejected(ExternalServiceError):
    code = "PAYMENT_REJECTED"

    def __init__(self, status_code: int, gateway_code: str | None, gateway_message: str | None):
        super().__init__(
            "Payment confirmation was rejected by the gateway",
            code=gateway_code,
            gateway_message=gateway_message,
        )
        # Surface the gateway's own HTTP status to the caller.
        self.status_code = status_code if 400 <= status_code < 600 else 502
