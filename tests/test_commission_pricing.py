from decimal import Decimal

import pytest

from marketplace.domain.errors import InvalidShippingMethod
from marketplace.services.commission import commission, money
from marketplace.services.pricing import SHIPPING_METHODS, ShippingMethod, get_shipping_method, quote, to_minor_units


def test_commission_on_line_subtotal():
    assert commission(Decimal("50.00"), Decimal("15")) == Decimal("7.50")


def test_commission_rounds_half_up():
    #0.10 * 5% = 0.005 -> 0.01
    assert commission(Decimal("0.10"), Decimal("5")) == Decimal("0.01")
    #33.33 * 12.5% = 4.16625 -> 4.17
    assert commission(Decimal("33.33"), Decimal("12.5")) == Decimal("4.17")


def test_commission_zero_rate():
    assert commission(Decimal("99.99"), 0) == Decimal("0.00")


@pytest.mark.parametrize("subtotal, rate", [(Decimal("-1"), Decimal("10")), (Decimal("10"), Decimal("-1"))])
def test_commission_rejects_negative_input(subtotal, rate):
    with pytest.raises(ValueError):
        commission(subtotal, rate)


def test_money_quantizes_to_cents():
    assert money("2.345") == Decimal("2.35")
    assert money(3) == Decimal("3.00")


def test_quote_below_free_shipping_threshold():
    method = ShippingMethod("test", "Test", Decimal("5.99"), "1 day")

    totals = quote(Decimal("50.00"), method)

    assert totals.subtotal == Decimal("50.00")
    assert totals.tax == Decimal("4.00")
    assert totals.shipping_cost == Decimal("5.99")
    assert totals.total == Decimal("59.99")


def test_quote_free_shipping_from_threshold():
    totals = quote(Decimal("100.00"), SHIPPING_METHODS["overnight"])

    assert totals.shipping_cost == Decimal("0.00")
    assert totals.total == Decimal("108.00")


def test_quote_applies_discount():
    totals = quote(Decimal("20.00"), SHIPPING_METHODS["standard"], discount=Decimal("5.00"))

    assert totals.total == Decimal("20.00") + Decimal("1.60") + Decimal("9.99") - Decimal("5.00")


def test_unknown_shipping_method():
    with pytest.raises(InvalidShippingMethod) as exc:
        get_shipping_method("teleport")

    assert exc.value.status_code == 400
    assert exc.value.to_detail()["shipping_method_id"] == "teleport"


def test_to_minor_units():
    assert to_minor_units(Decimal("59.99")) == 5999
    assert to_minor_units(Decimal("0.5")) == 50
