# marketplace/services/order_assembler.py
import secrets
import string
import time
from decimal import Decimal
from typing import Callable, Sequence
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.data.models.order import OrderModel, OrderItemModel
from marketplace.data.models.payment import PaymentModel
from marketplace.domain.errors import (
    DomainError,
    DuplicateOrderNumber,
    EmptyCart,
    InvalidAddress,
    PaymentIntentInUse,
    PersistenceFailure,
    ProductUnavailable,
    ValidationFailed,
)
from marketplace.domain.states import OrderStatus, PaymentStatus, OrderItemStatus
from marketplace.repos.cart_repo import CartRepo
from marketplace.repos.order_repo import OrderRepo
from marketplace.repos.payment_repo import PaymentRepo
from marketplace.services.cart_snapshot import SnapshotLine
from marketplace.services.catalog import ProductCatalog
from marketplace.services.commission import commission, money
from marketplace.services.inventory_ledger import InventoryLedger
from marketplace.services.notification_service import NotificationEmitter
from marketplace.services.pricing import ShippingMethod, get_shipping_method, quote
from marketplace.utils.settings import CURRENCY, ORDER_NUMBER_MAX_ATTEMPTS, ORDER_NUMBER_PREFIX
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)

_BASE36 = string.digits + string.ascii_uppercase
_REQUIRED_ADDRESS_FIELDS = ("full_name", "address_line1", "city", "postal_code", "country")


def _base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_order_number(prefix: str = ORDER_NUMBER_PREFIX) -> str:
    #timestamp w ms + 4 losowe znaki, unikalnosc i tak pilnuje constraint w bazie
    timestamp = _base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(4))
    return f"{prefix}-{timestamp}-{suffix}"


def _validate_address(address: dict | None, kind: str):
    if not address:
        raise InvalidAddress(kind)
    for field_name in _REQUIRED_ADDRESS_FIELDS:
        if not str(address.get(field_name) or "").strip():
            raise InvalidAddress(kind)


class OrderAssembler:
    """
    Transakcja checkoutu: Order + OrderItems + Payment + decrement stanow + czyszczenie koszyka.

    Wszystko w jednej transakcji bazy:
    - sukces: zamowienie kompletne, platnosc pending, koszyk pusty
    - dowolny blad: rollback, zadnych wierszy, stan magazynu bez zmian

    Kolizja order_number -> ponowienie z nowym numerem (max ORDER_NUMBER_MAX_ATTEMPTS).
    """

    def __init__(
        self,
        db: Session,
        ledger: InventoryLedger | None = None,
        notifier: NotificationEmitter | None = None,
        shipping_methods: dict[str, ShippingMethod] | None = None,
        order_number_factory: Callable[[], str] = generate_order_number,
        max_attempts: int = ORDER_NUMBER_MAX_ATTEMPTS,
        currency: str = CURRENCY,
    ):
        self.db = db
        self.ledger = ledger or InventoryLedger(db)
        self.notifier = notifier or NotificationEmitter(db)
        self.catalog = ProductCatalog(db)
        self.order_repo = OrderRepo(db)
        self.payment_repo = PaymentRepo(db)
        self.cart_repo = CartRepo(db)
        self.shipping_methods = shipping_methods
        self.order_number_factory = order_number_factory
        self.max_attempts = max(1, max_attempts)
        self.currency = currency

    def assemble(
        self,
        user_id: int,
        lines: Sequence[SnapshotLine],
        shipping_method_id: str,
        shipping_address: dict,
        billing_address: dict,
        payment_intent_id: str,
        notes: str | None = None,
        discount: Decimal = Decimal("0.00"),
    ) -> OrderModel:
        #walidacja przed jakimkolwiek zapisem
        if not lines:
            raise EmptyCart()
        method = get_shipping_method(shipping_method_id, self.shipping_methods)
        _validate_address(shipping_address, "shipping")
        _validate_address(billing_address, "billing")
        if not payment_intent_id:
            raise ValidationFailed("Payment intent is required")

        last_error: DuplicateOrderNumber | None = None

        for attempt in range(1, self.max_attempts + 1):
            order_number = self.order_number_factory()
            try:
                order = self._assemble_once(
                    user_id, lines, method, shipping_address, billing_address,
                    payment_intent_id, order_number, notes, discount,
                )
                self.db.commit()
            except DuplicateOrderNumber as e:
                self._rollback()
                logger.warning(
                    f"Order number collision {e.order_number} "
                    f"(attempt {attempt}/{self.max_attempts}) for user {user_id}"
                )
                last_error = e
                continue
            except DomainError:
                self._rollback()
                raise
            except SQLAlchemyError as e:
                self._rollback()
                logger.error(f"Order persistence failed for user {user_id}: {e}")
                raise PersistenceFailure() from e

            self.notifier.dispatch_pending()
            logger.info(
                f"Order {order.id} ({order_number}) created for user {user_id}, "
                f"{len(lines)} item(s), total {order.total}"
            )
            return order

        raise last_error

    def _rollback(self):
        self.db.rollback()
        self.notifier.discard_pending()

    def _assemble_once(
        self,
        user_id: int,
        lines: Sequence[SnapshotLine],
        method: ShippingMethod,
        shipping_address: dict,
        billing_address: dict,
        payment_intent_id: str,
        order_number: str,
        notes: str | None,
        discount: Decimal,
    ) -> OrderModel:
        #snapshot mogl byc czytany w tej samej sesji, chcemy swieze wiersze
        self.db.expire_all()

        if self.payment_repo.get_by_intent(payment_intent_id):
            raise PaymentIntentInUse(payment_intent_id)

        # 1. ponowny odczyt + atomowa rezerwacja kazdej linii
        items: list[OrderItemModel] = []
        subtotal = Decimal("0.00")

        for line in lines:
            availability = self.catalog.get_availability(line.product_id, line.variant_id)
            if availability is None or not availability.active:
                raise ProductUnavailable(line.product_id, line.variant_id)

            #rzuca InsufficientStock z aktualnym stanem
            self.ledger.reserve(line.product_id, line.variant_id, line.quantity, availability.name)

            # 2. pozycja + prowizja vendora
            line_subtotal = money(availability.price * line.quantity)
            subtotal += line_subtotal

            items.append(
                OrderItemModel(
                    vendor_id=availability.vendor_id,
                    product_id=line.product_id,
                    variant_id=line.variant_id,
                    product_name=availability.name,
                    variant_name=availability.variant_name,
                    quantity=line.quantity,
                    unit_price=money(availability.price),
                    subtotal=line_subtotal,
                    commission_rate=availability.commission_rate,
                    commission_amount=commission(line_subtotal, availability.commission_rate),
                    status=OrderItemStatus.PENDING.value,
                )
            )

        # 3. podatek, wysylka, total
        totals = quote(subtotal, method, discount)

        # 4-5. order -> items -> payment -> koszyk
        if self.order_repo.number_exists(order_number):
            raise DuplicateOrderNumber(order_number)

        order = OrderModel(
            order_number=order_number,
            user_id=user_id,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            subtotal=totals.subtotal,
            tax=totals.tax,
            shipping_cost=totals.shipping_cost,
            discount=totals.discount,
            total=totals.total,
            currency=self.currency,
            shipping_method=method.id,
            shipping_address=shipping_address,
            billing_address=billing_address,
            notes=notes,
        )
        try:
            self.order_repo.add_order(order)
        except IntegrityError as e:
            #wyscig z innym checkoutem o ten sam numer
            if "order_number" in str(e.orig):
                raise DuplicateOrderNumber(order_number) from e
            raise

        for item in items:
            item.order_id = order.id
        self.order_repo.add_items(items)

        try:
            self.payment_repo.add(
                PaymentModel(
                    order_id=order.id,
                    external_intent_id=payment_intent_id,
                    amount=totals.total,
                    currency=self.currency,
                    status=PaymentStatus.PENDING.value,
                )
            )
        except IntegrityError as e:
            #rownolegly checkout z tym samym intentem zacommitowal pierwszy
            if "external_intent_id" in str(e.orig):
                raise PaymentIntentInUse(payment_intent_id) from e
            raise

        removed = self.cart_repo.clear(user_id)
        logger.info(f"Cleared {removed} cart line(s) for user {user_id}")

        self.notifier.enqueue(
            user_id=user_id,
            type="order",
            title="Order Placed",
            message=f"Your order #{order_number} has been placed. Total: ${totals.total}",
            link=f"/dashboard/orders/{order.id}",
            data={"order_id": order.id, "order_number": order_number},
        )

        return order
