# marketplace/services/vendor_balance.py
from collections import defaultdict
from decimal import Decimal
from typing import Protocol
from sqlalchemy.orm import Session

from marketplace.repos.vendor_repo import VendorRepo
from marketplace.services.commission import money
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


def vendor_net_amounts(items) -> dict[int, Decimal]:
    """Kwota dla vendora per pozycja: subtotal - prowizja."""
    totals: dict[int, Decimal] = defaultdict(lambda: Decimal("0.00"))
    for item in items:
        totals[item.vendor_id] += item.subtotal - item.commission_amount
    return dict(totals)


class VendorBalance(Protocol):
    def credit(self, vendor_id: int, amount: Decimal) -> None: ...


class DbVendorBalance:
    """
    Saldo do wyplaty w kolumnie vendors.pending_balance.
    Ujemna kwota = odwrocenie wczesniejszego kredytu (refund).
    """

    def __init__(self, db: Session):
        self.repo = VendorRepo(db)

    def credit(self, vendor_id: int, amount: Decimal) -> None:
        amount = money(amount)
        if amount == 0:
            return

        rowcount = self.repo.add_to_balance(vendor_id, amount)
        if rowcount == 0:
            logger.warning(f"Vendor {vendor_id} not found, balance credit {amount} skipped")
            return

        logger.info(f"Vendor {vendor_id} balance credited {amount}")
