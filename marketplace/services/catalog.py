# marketplace/services/catalog.py
from dataclasses import dataclass
from decimal import Decimal
from sqlalchemy.orm import Session

from marketplace.domain.states import ProductStatus
from marketplace.repos.product_repo import ProductRepo
from marketplace.utils.settings import DEFAULT_COMMISSION_RATE


@dataclass(frozen=True)
class Availability:
    product_id: int
    variant_id: int | None
    vendor_id: int
    name: str
    variant_name: str | None
    price: Decimal
    quantity: int
    active: bool
    commission_rate: Decimal


class ProductCatalog:
    """
    Odczyt dostepnosci produktu/wariantu (cena, ilosc, aktywnosc).
    Zarzadzanie katalogiem jest poza tym serwisem, tu tylko read.
    """

    def __init__(self, db: Session):
        self.repo = ProductRepo(db)

    def get_availability(self, product_id: int, variant_id: int | None = None) -> Availability | None:
        product = self.repo.get_product(product_id)
        if not product:
            return None

        rate = product.vendor.commission_rate if product.vendor else None
        if rate is None:
            rate = DEFAULT_COMMISSION_RATE

        price = product.price
        quantity = product.quantity
        active = product.status == ProductStatus.ACTIVE.value
        variant_name = None

        if variant_id is not None:
            variant = self.repo.get_variant(variant_id)
            if not variant or variant.product_id != product.id:
                return None
            #wariant ma wlasna cene i stan
            price = variant.price
            quantity = variant.quantity
            active = active and variant.is_active
            variant_name = variant.name

        return Availability(
            product_id=product.id,
            variant_id=variant_id,
            vendor_id=product.vendor_id,
            name=product.name,
            variant_name=variant_name,
            price=Decimal(price),
            quantity=quantity,
            active=active,
            commission_rate=Decimal(rate),
        )
