# marketplace/services/cart_service.py
from decimal import Decimal
from typing import Dict, Any
from sqlalchemy.orm import Session

from marketplace.data.models.cart_item import CartItemModel
from marketplace.domain.errors import InsufficientStock, NotFound, ProductUnavailable
from marketplace.repos.cart_repo import CartRepo
from marketplace.services.catalog import ProductCatalog
from marketplace.services.cart_snapshot import CartSnapshotter
from marketplace.services.pricing import SHIPPING_METHODS, quote
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Prosta implementacja cqrs dla linii koszyka
    commands (add, update, remove) pilnuja 1 <= quantity <= stan magazynowy
    query (get) - snapshot z aktualnymi cenami + ostrzezenia
    """

    def __init__(self, db: Session, catalog: ProductCatalog | None = None):
        self.repo = CartRepo(db)
        self.catalog = catalog or ProductCatalog(db)
        self.snapshotter = CartSnapshotter(db, self.catalog)

    #query - odczyt
    def get_cart(self, user_id: int) -> Dict[str, Any]:
        snapshot = self.snapshotter.snapshot(user_id, allow_empty=True)

        #szacunek, wysylka standardowa
        totals = quote(snapshot.subtotal, SHIPPING_METHODS["standard"])

        return {
            "user_id": user_id,
            "items": [
                {
                    "id": line.cart_item_id,
                    "product_id": line.product_id,
                    "variant_id": line.variant_id,
                    "name": line.name,
                    "variant_name": line.variant_name,
                    "quantity": line.quantity,
                    "unit_price": line.unit_price,
                    "available": line.available,
                }
                for line in snapshot.lines
            ],
            "warnings": [
                {
                    "cart_item_id": w.cart_item_id,
                    "product_id": w.product_id,
                    "kind": w.kind,
                    "message": w.message,
                }
                for w in snapshot.warnings
            ],
            "summary": {
                "subtotal": totals.subtotal,
                "estimated_tax": totals.tax,
                "estimated_shipping": totals.shipping_cost,
                "total": totals.total,
                "item_count": snapshot.item_count,
            },
        }

    #commands
    def add_item(self, user_id: int, product_id: int, variant_id: int | None, quantity: int) -> Dict[str, Any]:
        if quantity <= 0:
            raise ValueError("Quantity must be greater than 0")

        availability = self.catalog.get_availability(product_id, variant_id)
        if availability is None or not availability.active:
            raise ProductUnavailable(product_id, variant_id)

        existing = self.repo.find_line(user_id, product_id, variant_id)
        new_quantity = quantity + (existing.quantity if existing else 0)

        if new_quantity > availability.quantity:
            raise InsufficientStock(product_id, availability.quantity, variant_id, availability.name)

        if existing:
            logger.info(
                f"Product {product_id} already in cart of user {user_id}, "
                f"quantity {existing.quantity} -> {new_quantity}"
            )
            existing.quantity = new_quantity
            existing.price_at_add = availability.price
        else:
            logger.info(f"Adding product {product_id} variant {variant_id} to cart of user {user_id}")
            self.repo.add_line(
                CartItemModel(
                    user_id=user_id,
                    product_id=product_id,
                    variant_id=variant_id,
                    quantity=quantity,
                    price_at_add=availability.price,
                )
            )

        self.repo.commit()
        return self.get_cart(user_id)

    def update_quantity(self, user_id: int, line_id: int, quantity: int) -> Dict[str, Any]:
        if quantity <= 0:
            raise ValueError("Quantity must be greater than 0")

        line = self._owned_line(user_id, line_id)

        availability = self.catalog.get_availability(line.product_id, line.variant_id)
        if availability is None or not availability.active:
            raise ProductUnavailable(line.product_id, line.variant_id)

        if quantity > availability.quantity:
            raise InsufficientStock(line.product_id, availability.quantity, line.variant_id, availability.name)

        line.quantity = quantity
        self.repo.commit()

        logger.info(f"Cart line {line_id} of user {user_id} set to quantity {quantity}")
        return self.get_cart(user_id)

    def remove_item(self, user_id: int, line_id: int) -> Dict[str, Any]:
        line = self._owned_line(user_id, line_id)

        self.repo.delete_line(line)
        self.repo.commit()

        logger.info(f"Cart line {line_id} removed for user {user_id}")
        return self.get_cart(user_id)

    def _owned_line(self, user_id: int, line_id: int) -> CartItemModel:
        line = self.repo.get_line(line_id)
        if not line:
            raise NotFound("Cart item not found")
        if line.user_id != user_id:
            raise PermissionError("Access to cart item denied")
        return line
