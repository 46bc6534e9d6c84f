# marketplace/domain/errors.py
from decimal import Decimal
from typing import Any


class DomainError(Exception):
    """
    Bazowy blad domeny. Router mapuje status_code + detail na HTTPException.
    """

    status_code = 400
    code = "domain_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_detail(self) -> dict:
        detail = {"code": self.code, "message": self.message}
        for key, value in self.context.items():
            if isinstance(value, Decimal):
                value = str(value)
            detail[key] = value
        return detail


#walidacja - 4xx bez zmiany stanu
class ValidationFailed(DomainError):
    status_code = 400
    code = "validation_failed"


class EmptyCart(ValidationFailed):
    code = "empty_cart"

    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class InvalidShippingMethod(ValidationFailed):
    code = "invalid_shipping_method"

    def __init__(self, shipping_method_id: str):
        super().__init__("Invalid shipping method", shipping_method_id=shipping_method_id)


class InvalidAddress(ValidationFailed):
    code = "invalid_address"

    def __init__(self, kind: str = "shipping"):
        super().__init__(f"Invalid {kind} address", address_kind=kind)


class InvalidPaymentAmount(ValidationFailed):
    code = "invalid_payment_amount"


class SignatureInvalid(ValidationFailed):
    code = "signature_invalid"


class NotFound(DomainError):
    status_code = 404
    code = "not_found"


#konflikty - wystarczajaco szczegolow zeby caller mogl zareagowac
class Conflict(DomainError):
    status_code = 409
    code = "conflict"


class InsufficientStock(Conflict):
    code = "insufficient_stock"

    def __init__(self, product_id: int, available: int, variant_id: int | None = None, name: str | None = None):
        if available > 0:
            message = f"Only {available} left in stock"
        else:
            message = "Out of stock"
        if name:
            message = f"{message} for {name}"
        super().__init__(message, product_id=product_id, variant_id=variant_id, available=available)
        self.product_id = product_id
        self.variant_id = variant_id
        self.available = available


class ProductUnavailable(Conflict):
    code = "product_unavailable"

    def __init__(self, product_id: int, variant_id: int | None = None):
        super().__init__(
            "Product is no longer available", product_id=product_id, variant_id=variant_id
        )
        self.product_id = product_id


class IllegalTransition(Conflict):
    code = "illegal_transition"

    def __init__(self, current: str, target: str, allowed: list[str]):
        allowed_txt = ", ".join(allowed) or "none"
        super().__init__(
            f"Cannot change status from '{current}' to '{target}'. Allowed: {allowed_txt}",
            current=current,
            target=target,
            allowed=allowed,
        )
        self.current = current
        self.target = target
        self.allowed = allowed


class PaymentIntentInUse(Conflict):
    code = "payment_intent_in_use"

    def __init__(self, intent_id: str):
        super().__init__("Payment intent is already attached to an order", payment_intent_id=intent_id)


#zaleznosci zewnetrzne - "sprobuj pozniej" a nie "zle zapytanie"
class PaymentProviderError(DomainError):
    status_code = 502
    code = "payment_provider_error"

    def __init__(self, message: str = "Payment service error. Please try again."):
        super().__init__(message)


#wewnetrzne
class PersistenceFailure(DomainError):
    status_code = 500
    code = "persistence_failure"

    def __init__(self, message: str = "Failed to create order"):
        super().__init__(message)


class DuplicateOrderNumber(DomainError):
    status_code = 503
    code = "duplicate_order_number"

    def __init__(self, order_number: str):
        super().__init__("Could not allocate an order number, please retry", order_number=order_number)
        self.order_number = order_number
