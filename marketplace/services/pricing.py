# marketplace/services/pricing.py
from dataclasses import dataclass
from decimal import Decimal

from marketplace.domain.errors import InvalidShippingMethod
from marketplace.services.commission import money
from marketplace.utils.settings import TAX_RATE_PERCENT, FREE_SHIPPING_THRESHOLD


@dataclass(frozen=True)
class ShippingMethod:
    id: str
    name: str
    price: Decimal
    estimated_days: str


SHIPPING_METHODS: dict[str, ShippingMethod] = {
    "standard": ShippingMethod("standard", "Standard Shipping", Decimal("9.99"), "5-7 business days"),
    "express": ShippingMethod("express", "Express Shipping", Decimal("19.99"), "2-3 business days"),
    "overnight": ShippingMethod("overnight", "Overnight Shipping", Decimal("29.99"), "1 business day"),
}


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax: Decimal
    shipping_cost: Decimal
    discount: Decimal
    total: Decimal


def get_shipping_method(method_id: str, methods: dict[str, ShippingMethod] | None = None) -> ShippingMethod:
    method = (methods if methods is not None else SHIPPING_METHODS).get(method_id)
    if not method:
        raise InvalidShippingMethod(method_id)
    return method


def quote(
    subtotal: Decimal,
    method: ShippingMethod,
    discount: Decimal = Decimal("0.00"),
    tax_rate_percent: Decimal = TAX_RATE_PERCENT,
    free_shipping_threshold: Decimal = FREE_SHIPPING_THRESHOLD,
) -> OrderTotals:
    subtotal = money(subtotal)
    discount = money(discount)

    tax = money(subtotal * tax_rate_percent / Decimal("100"))
    #darmowa wysylka od progu
    shipping_cost = Decimal("0.00") if subtotal >= free_shipping_threshold else money(method.price)
    total = subtotal + tax + shipping_cost - discount

    return OrderTotals(
        subtotal=subtotal,
        tax=tax,
        shipping_cost=shipping_cost,
        discount=discount,
        total=money(total),
    )


def to_minor_units(amount: Decimal) -> int:
    #dolary -> centy, tylko waluty z 2 miejscami po przecinku
    return int(money(amount) * 100)
