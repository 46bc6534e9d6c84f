# marketplace/services/commission.py
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def commission(subtotal, rate_percent) -> Decimal:
    """
    Prowizja platformy od pozycji: subtotal * rate / 100, half-up do 2 miejsc.
    Czysta funkcja, bez efektow ubocznych.
    """
    subtotal = Decimal(str(subtotal))
    rate_percent = Decimal(str(rate_percent))

    if subtotal < 0:
        raise ValueError("Subtotal cannot be negative")
    if rate_percent < 0:
        raise ValueError("Commission rate cannot be negative")

    return money(subtotal * rate_percent / Decimal("100"))
