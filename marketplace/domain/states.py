# marketplace/domain/states.py
from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class OrderItemStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class ProductStatus(str, Enum):
    ACTIVE = "active"
    DRAFT = "draft"
    ARCHIVED = "archived"


class PaymentEventKind(str, Enum):
    PAYMENT_SUCCEEDED = "payment_succeeded"
    PAYMENT_FAILED = "payment_failed"
    CHARGE_REFUNDED = "charge_refunded"
    UNRECOGNIZED = "unrecognized"


TERMINAL_ORDER_STATUSES = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}
)

TERMINAL_ITEM_STATUSES = frozenset(
    {OrderItemStatus.DELIVERED, OrderItemStatus.CANCELLED, OrderItemStatus.REFUNDED}
)

#jedyne przejscia ktore vendor moze wywolac bezposrednio
#kazdy status musi miec wpis, test sprawdza kompletnosc
VENDOR_TRANSITIONS: dict[OrderItemStatus, tuple[OrderItemStatus, ...]] = {
    OrderItemStatus.PENDING: (OrderItemStatus.PROCESSING,),
    OrderItemStatus.CONFIRMED: (OrderItemStatus.PROCESSING,),
    OrderItemStatus.PROCESSING: (OrderItemStatus.SHIPPED,),
    OrderItemStatus.SHIPPED: (OrderItemStatus.DELIVERED,),
    OrderItemStatus.DELIVERED: (),
    OrderItemStatus.CANCELLED: (),
    OrderItemStatus.REFUNDED: (),
}

#dodanie trackingu przesuwa item na shipped
TRACKING_AUTO_SHIP_FROM = frozenset(
    {OrderItemStatus.PENDING, OrderItemStatus.CONFIRMED, OrderItemStatus.PROCESSING}
)

#anulowanie przez klienta tylko przed realizacja
CUSTOMER_CANCELLABLE_ORDER = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})
CUSTOMER_CANCELLABLE_ITEM = frozenset({OrderItemStatus.PENDING, OrderItemStatus.CONFIRMED})

#preconditions dla eventow platnosci, klucz dla idempotencji
PAYMENT_EVENT_PRECONDITIONS: dict[PaymentEventKind, frozenset[PaymentStatus]] = {
    PaymentEventKind.PAYMENT_SUCCEEDED: frozenset({PaymentStatus.PENDING, PaymentStatus.FAILED}),
    PaymentEventKind.PAYMENT_FAILED: frozenset({PaymentStatus.PENDING}),
    PaymentEventKind.CHARGE_REFUNDED: frozenset(
        {PaymentStatus.PENDING, PaymentStatus.PAID, PaymentStatus.FAILED}
    ),
    PaymentEventKind.UNRECOGNIZED: frozenset(),
}


def values(statuses) -> list[str]:
    return [s.value for s in statuses]
