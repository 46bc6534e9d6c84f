# marketplace/services/cart_snapshot.py
from dataclasses import dataclass, field
from decimal import Decimal
from sqlalchemy.orm import Session

from marketplace.domain.errors import EmptyCart
from marketplace.repos.cart_repo import CartRepo
from marketplace.services.catalog import ProductCatalog
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SnapshotLine:
    cart_item_id: int
    product_id: int
    variant_id: int | None
    vendor_id: int
    name: str
    variant_name: str | None
    quantity: int
    requested_quantity: int
    unit_price: Decimal
    price_at_add: Decimal
    available: int
    active: bool
    commission_rate: Decimal

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class SnapshotWarning:
    cart_item_id: int
    product_id: int
    variant_id: int | None
    kind: str  # unavailable, out_of_stock, clamped
    message: str
    available: int = 0


@dataclass
class CartSnapshot:
    user_id: int
    lines: list[SnapshotLine] = field(default_factory=list)
    warnings: list[SnapshotWarning] = field(default_factory=list)

    @property
    def subtotal(self) -> Decimal:
        return sum((line.subtotal for line in self.lines), Decimal("0.00"))

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)


class CartSnapshotter:
    """
    Odczyt koszyka + walidacja kazdej linii wzgledem aktualnej ceny i stanu.
    Nic nie zapisuje - linie odrzucone znikaja tylko ze snapshotu, nie z koszyka.
    """

    def __init__(self, db: Session, catalog: ProductCatalog | None = None):
        self.cart_repo = CartRepo(db)
        self.catalog = catalog or ProductCatalog(db)

    def snapshot(self, user_id: int, allow_empty: bool = False) -> CartSnapshot:
        result = CartSnapshot(user_id=user_id)

        for item in self.cart_repo.get_lines(user_id):
            availability = self.catalog.get_availability(item.product_id, item.variant_id)

            #produkt usuniety albo nieaktywny
            if availability is None or not availability.active:
                result.warnings.append(
                    SnapshotWarning(
                        cart_item_id=item.id,
                        product_id=item.product_id,
                        variant_id=item.variant_id,
                        kind="unavailable",
                        message="Product is no longer available",
                    )
                )
                continue

            quantity = item.quantity
            if quantity > availability.quantity:
                quantity = availability.quantity

                if quantity <= 0:
                    result.warnings.append(
                        SnapshotWarning(
                            cart_item_id=item.id,
                            product_id=item.product_id,
                            variant_id=item.variant_id,
                            kind="out_of_stock",
                            message=f"{availability.name} is out of stock",
                        )
                    )
                    continue

                #clamp do dostepnej ilosci, nigdy po cichu pelna ilosc
                result.warnings.append(
                    SnapshotWarning(
                        cart_item_id=item.id,
                        product_id=item.product_id,
                        variant_id=item.variant_id,
                        kind="clamped",
                        message=f"Only {availability.quantity} left in stock for {availability.name}",
                        available=availability.quantity,
                    )
                )

            result.lines.append(
                SnapshotLine(
                    cart_item_id=item.id,
                    product_id=item.product_id,
                    variant_id=item.variant_id,
                    vendor_id=availability.vendor_id,
                    name=availability.name,
                    variant_name=availability.variant_name,
                    quantity=quantity,
                    requested_quantity=item.quantity,
                    unit_price=availability.price,
                    price_at_add=item.price_at_add,
                    available=availability.quantity,
                    active=availability.active,
                    commission_rate=availability.commission_rate,
                )
            )

        if result.warnings:
            logger.info(f"Cart snapshot for user {user_id}: {len(result.warnings)} warning(s)")

        if not result.lines and not allow_empty:
            raise EmptyCart()

        return result
