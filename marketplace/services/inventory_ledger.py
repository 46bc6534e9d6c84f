# marketplace/services/inventory_ledger.py
from sqlalchemy.orm import Session

from marketplace.domain.errors import InsufficientStock
from marketplace.repos.product_repo import ProductRepo
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


class InventoryLedger:
    """
    Stan magazynowy per SKU (produkt albo wariant).
    - reserve: atomowy warunkowy decrement, nigdy read-then-write
    - release: zwrot ilosci przy anulowaniu / zwrocie
    Commit robi wolajacy, ledger dziala w jego transakcji.
    """

    def __init__(self, db: Session):
        self.repo = ProductRepo(db)

    def available(self, product_id: int, variant_id: int | None = None) -> int:
        return self.repo.current_quantity(product_id, variant_id)

    def reserve(self, product_id: int, variant_id: int | None, quantity: int, name: str | None = None):
        if quantity <= 0:
            raise ValueError("Quantity must be greater than 0")

        rowcount = self.repo.decrement_quantity(product_id, variant_id, quantity)

        #0 rows affected - za malo na stanie (albo ktos wzial ostatnia sztuke)
        if rowcount == 0:
            available = self.available(product_id, variant_id)
            logger.info(
                f"Reserve failed for product {product_id} variant {variant_id}: "
                f"requested {quantity}, available {available}"
            )
            raise InsufficientStock(product_id=product_id, variant_id=variant_id, available=available, name=name)

        logger.info(f"Reserved {quantity} of product {product_id} variant {variant_id}")

    def release(self, product_id: int, variant_id: int | None, quantity: int):
        if quantity <= 0:
            raise ValueError("Quantity must be greater than 0")

        rowcount = self.repo.increment_quantity(product_id, variant_id, quantity)
        if rowcount == 0:
            #produkt usuniety w miedzyczasie, nie ma czego zwracac
            logger.warning(f"Release skipped, product {product_id} variant {variant_id} not found")
            return

        logger.info(f"Released {quantity} of product {product_id} variant {variant_id}")
