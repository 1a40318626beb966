# storefront/domain/errors.py
from typing import Any, Dict, List


class StorefrontError(Exception):
    """Base for errors returned to the caller as structured JSON."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> Dict[str, Any]:
        return {"error": type(self).__name__, "message": self.message}


class NotFound(StorefrontError):
    status_code = 404


class InvalidQuantity(StorefrontError):
    pass


class InsufficientStock(StorefrontError):
    """Retryable with a smaller quantity. Never clamped on the server side."""

    def __init__(self, variant_id: int, available: int, requested: int):
        super().__init__(f"Only {available} left for variant {variant_id}")
        self.variant_id = variant_id
        self.available = available
        self.requested = requested

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail.update(
            variant_id=self.variant_id,
            available=self.available,
            requested=self.requested,
        )
        return detail


class VariantUnavailable(StorefrontError):
    pass


class ProductInactive(StorefrontError):
    pass


class EmptyCart(StorefrontError):
    pass


class CheckoutRejected(StorefrontError):
    status_code = 409

    def __init__(self, issues: List[Dict[str, Any]]):
        super().__init__("Cart failed validation, order not created")
        self.issues = issues

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail["issues"] = self.issues
        return detail


class InvalidTransition(StorefrontError):
    status_code = 409


class EmailTaken(StorefrontError):
    status_code = 409


class TransferFailed(StorefrontError):
    """Guest data was not merged; the ephemeral copy is intact and the transfer can be retried."""

    status_code = 500


class StoreUnavailable(StorefrontError):
    status_code = 503


class CorruptRecord(StorefrontError):
    status_code = 500
