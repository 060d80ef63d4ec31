"""
Exception hierarchy for the order, inventory and account flows.

Every error carries a human-readable message and a details dict so routes
can render a specific message (e.g. naming the offending product).
"""

from __future__ import annotations


class GroceryError(Exception):
    """Base class for all domain errors."""

    http_status = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


# --- NotFound -----------------------------------------------------------------

class NotFoundError(GroceryError):
    http_status = 404


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id):
        self.user_id = user_id
        super().__init__("User not found.", {"user_id": user_id})


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f"Product ID {product_id} not found.", {"product_id": product_id})


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__("Order not found.", {"order_id": order_id})


# --- Validation ---------------------------------------------------------------

class ValidationError(GroceryError):
    """400-level input problem."""

    http_status = 400


class EmptyOrderError(ValidationError):
    def __init__(self):
        super().__init__("No items in order.")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


class PasswordReuseError(ValidationError):
    def __init__(self, window: int):
        self.window = window
        super().__init__(
            f"New password must differ from your last {window} passwords.",
            {"reuse_window": window},
        )


class ConflictError(GroceryError):
    """409-level business rule conflict (e.g., deleting a referenced product)."""

    http_status = 409


class InvalidStatusTransitionError(ConflictError):
    def __init__(self, order_id: int, current_status: str, new_status: str):
        self.order_id = order_id
        self.current_status = current_status
        self.new_status = new_status
        super().__init__(
            f"Cannot change order status from {current_status} to {new_status}.",
            {"order_id": order_id, "current_status": current_status, "new_status": new_status},
        )


# --- Stock --------------------------------------------------------------------

class ProductUnavailableError(GroceryError):
    http_status = 409

    def __init__(self, product_id: int, product_name: str):
        self.product_id = product_id
        self.product_name = product_name
        super().__init__(
            f'Product "{product_name}" is not available for purchase.',
            {"product_id": product_id, "product_name": product_name},
        )


class InsufficientStockError(GroceryError):
    http_status = 409

    def __init__(self, product_id: int, product_name: str, requested: int, available: int):
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available
        super().__init__(
            f'Not enough stock for "{product_name}". Available: {available}',
            {
                "product_id": product_id,
                "product_name": product_name,
                "requested_quantity": requested,
                "available_quantity": available,
            },
        )


# --- Accounts -----------------------------------------------------------------

class AccountLockedError(GroceryError):
    http_status = 423

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__("Account is locked.", {"user_id": user_id})


# --- Store --------------------------------------------------------------------

class ConcurrentModificationError(GroceryError):
    """Retries exhausted while competing writers kept invalidating our read."""

    http_status = 409

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            "The record was modified concurrently. Please try again.",
            {"operation": operation, "attempts": attempts},
        )


class StoreTimeoutError(GroceryError):
    http_status = 503

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Timed out waiting for the data store during {operation}.")


class StoreFailureError(GroceryError):
    http_status = 500

    def __init__(self, operation: str, cause: str | None = None):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Data store failure during {operation}.")
