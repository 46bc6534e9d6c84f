# marketplace/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Any, List
from decimal import Decimal
from datetime import datetime


class CamelModel(BaseModel):
    """JSON w camelCase, w Pythonie snake_case."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# cart
class CartItemIn(CamelModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: int = Field(..., gt=0, description="ID produktu (musi być > 0)")
    variant_id: int | None = Field(None, gt=0)
    quantity: int = Field(1, gt=0, description="Ilość produktu (musi być > 0)")


class CartItemUpdate(CamelModel):
    quantity: int = Field(..., gt=0)


class CartLineOut(CamelModel):
    id: int
    product_id: int
    variant_id: int | None = None
    name: str
    variant_name: str | None = None
    quantity: int
    unit_price: Decimal
    available: int


class CartWarningOut(CamelModel):
    cart_item_id: int
    product_id: int
    kind: str
    message: str


class CartSummaryOut(CamelModel):
    subtotal: Decimal
    estimated_tax: Decimal
    estimated_shipping: Decimal
    total: Decimal
    item_count: int


class CartOut(CamelModel):
    """Schema dla koszyka (response)."""

    user_id: int
    items: List[CartLineOut]
    warnings: List[CartWarningOut]
    summary: CartSummaryOut


# checkout
class CheckoutIn(CamelModel):
    shipping_address_id: int = Field(..., gt=0)
    billing_address_id: int = Field(..., gt=0)
    shipping_method_id: str = Field(..., min_length=1)
    payment_intent_id: str = Field(..., min_length=1)
    notes: str | None = Field(None, max_length=1000)


class CheckoutOut(CamelModel):
    order_id: int
    order_number: str
    total: Decimal


class PaymentIntentIn(CamelModel):
    shipping_address_id: int = Field(..., gt=0)
    shipping_method_id: str = Field(..., min_length=1)


class PaymentIntentOut(CamelModel):
    client_secret: str
    payment_intent_id: str
    amount: Decimal
    currency: str


# orders
class OrderItemOut(CamelModel):
    id: int
    vendor_id: int
    product_id: int
    variant_id: int | None = None
    product_name: str
    variant_name: str | None = None
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    status: str


class PaymentOut(CamelModel):
    status: str
    amount: Decimal
    currency: str
    failure_reason: str | None = None


class TrackingOut(CamelModel):
    id: int
    order_item_id: int
    carrier: str
    tracking_number: str
    tracking_url: str | None = None
    status: str
    status_details: str | None = None
    estimated_delivery: str | None = None
    created_at: datetime | None = None


class OrderOut(CamelModel):
    """Schema dla zamówienia (response)."""

    id: int
    order_number: str
    user_id: int
    status: str
    payment_status: str
    subtotal: Decimal
    tax: Decimal
    shipping_cost: Decimal
    discount: Decimal
    total: Decimal
    currency: str
    shipping_method: str
    shipping_address: dict[str, Any]
    billing_address: dict[str, Any]
    notes: str | None = None
    created_at: datetime
    paid_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    items: List[OrderItemOut]
    payment: PaymentOut | None = None
    tracking: List[TrackingOut]


class OrderActionIn(CamelModel):
    action: str = Field(..., min_length=1)


# vendor
class VendorOrderItemOut(CamelModel):
    id: int
    order_id: int
    order_number: str
    product_id: int
    product_name: str
    variant_id: int | None = None
    variant_name: str | None = None
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    commission_amount: Decimal
    status: str
    allowed_transitions: List[str]
    shipping_address: dict[str, Any]
    created_at: datetime
    updated_at: datetime
    order_created_at: datetime


class VendorOrderDetailOut(VendorOrderItemOut):
    tracking: List[TrackingOut]


class PaginationOut(CamelModel):
    page: int
    per_page: int
    total: int
    total_pages: int


class VendorOrdersOut(CamelModel):
    orders: List[VendorOrderItemOut]
    pagination: PaginationOut
    stats: dict[str, int]


class VendorStatusIn(CamelModel):
    status: str = Field(..., min_length=1)


class TrackingIn(CamelModel):
    carrier: str = Field(..., min_length=1, max_length=100)
    tracking_number: str = Field(..., min_length=1, max_length=100)
    tracking_url: str | None = None
    status: str | None = Field(None, max_length=50)
    status_details: str | None = Field(None, max_length=500)
    estimated_delivery: str | None = None


class TrackingAddedOut(CamelModel):
    tracking: TrackingOut
    order_item_status: str


# webhooks / health
class WebhookAck(CamelModel):
    received: bool = True


class HealthOut(CamelModel):
    status: str
