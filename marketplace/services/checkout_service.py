# marketplace/services/checkout_service.py
from typing import Dict, Any
from sqlalchemy.orm import Session

from marketplace.domain.errors import EmptyCart, InsufficientStock, InvalidAddress, ProductUnavailable
from marketplace.repos.address_repo import AddressRepo
from marketplace.services.cart_snapshot import CartSnapshot, CartSnapshotter
from marketplace.services.order_assembler import OrderAssembler
from marketplace.services.payment_gateway import PaymentGatewayAdapter
from marketplace.services.pricing import ShippingMethod, get_shipping_method, quote, to_minor_units
from marketplace.utils.settings import CURRENCY
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)


class CheckoutService:
    """
    Use case'y checkoutu:
    1. create_payment_intent - wycena koszyka i intent u providera
    2. place_order - snapshot koszyka -> OrderAssembler
    """

    def __init__(
        self,
        db: Session,
        gateway: PaymentGatewayAdapter,
        assembler: OrderAssembler | None = None,
        shipping_methods: dict[str, ShippingMethod] | None = None,
    ):
        self.gateway = gateway
        self.address_repo = AddressRepo(db)
        self.snapshotter = CartSnapshotter(db)
        self.shipping_methods = shipping_methods
        self.assembler = assembler or OrderAssembler(db, shipping_methods=shipping_methods)

    def create_payment_intent(self, user_id: int, shipping_address_id: int, shipping_method_id: str) -> Dict[str, Any]:
        method = get_shipping_method(shipping_method_id, self.shipping_methods)
        self._address_snapshot(user_id, shipping_address_id, "shipping")

        snapshot = self._snapshot(user_id)

        totals = quote(snapshot.subtotal, method)

        intent = self.gateway.create_intent(
            to_minor_units(totals.total),
            CURRENCY,
            {
                "user_id": user_id,
                "shipping_address_id": shipping_address_id,
                "shipping_method_id": shipping_method_id,
            },
        )

        return {
            "client_secret": intent.client_secret,
            "payment_intent_id": intent.intent_id,
            "amount": totals.total,
            "currency": intent.currency,
        }

    def place_order(
        self,
        user_id: int,
        shipping_address_id: int,
        billing_address_id: int,
        shipping_method_id: str,
        payment_intent_id: str,
        notes: str | None = None,
    ) -> Dict[str, Any]:
        get_shipping_method(shipping_method_id, self.shipping_methods)
        shipping_address = self._address_snapshot(user_id, shipping_address_id, "shipping")
        billing_address = self._address_snapshot(user_id, billing_address_id, "billing")

        snapshot = self._snapshot(user_id)

        order = self.assembler.assemble(
            user_id=user_id,
            lines=snapshot.lines,
            shipping_method_id=shipping_method_id,
            shipping_address=shipping_address,
            billing_address=billing_address,
            payment_intent_id=payment_intent_id,
            notes=notes,
        )

        return {
            "order_id": order.id,
            "order_number": order.order_number,
            "total": order.total,
        }

    def _address_snapshot(self, user_id: int, address_id: int, kind: str) -> dict:
        address = self.address_repo.get_for_user(address_id, user_id)
        if not address:
            raise InvalidAddress(kind)
        return address.snapshot()

    def _snapshot(self, user_id: int) -> CartSnapshot:
        snapshot = self.snapshotter.snapshot(user_id, allow_empty=True)
        self._reject_degraded(snapshot)
        if not snapshot.lines:
            raise EmptyCart()
        return snapshot

    @staticmethod
    def _reject_degraded(snapshot: CartSnapshot):
        #kwota intentu musi odpowiadac koszykowi, wiec clamp/drop konczy checkout
        #klient musi najpierw przejrzec koszyk
        for warning in snapshot.warnings:
            if warning.kind == "unavailable":
                raise ProductUnavailable(warning.product_id, warning.variant_id)
            raise InsufficientStock(warning.product_id, warning.available, warning.variant_id)
