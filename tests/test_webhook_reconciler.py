from decimal import Decimal

import pytest
from sqlalchemy import select

from marketplace.data.models import NotificationModel, OrderItemModel, PaymentModel, VendorModel
from marketplace.domain.states import PaymentEventKind
from marketplace.services.inventory_ledger import InventoryLedger
from marketplace.services.payment_gateway import NormalizedEvent
from marketplace.services.webhook_reconciler import APPLIED, IGNORED, SKIPPED, UNKNOWN_INTENT, WebhookReconciler


def _event(kind, intent_id, event_id="evt_1", failure_message=None):
    raw_types = {
        PaymentEventKind.PAYMENT_SUCCEEDED: "payment_intent.succeeded",
        PaymentEventKind.PAYMENT_FAILED: "payment_intent.payment_failed",
        PaymentEventKind.CHARGE_REFUNDED: "charge.refunded",
        PaymentEventKind.UNRECOGNIZED: "customer.created",
    }
    return NormalizedEvent(event_id, kind, raw_types[kind], intent_id, failure_message)


def _balance(db, vendor_id):
    db.expire_all()
    return db.get(VendorModel, vendor_id).pending_balance


def _items(db, order_id):
    db.expire_all()
    return db.execute(select(OrderItemModel).where(OrderItemModel.order_id == order_id)).scalars().all()


def _payment(db, order_id):
    db.expire_all()
    return db.execute(select(PaymentModel).where(PaymentModel.order_id == order_id)).scalar_one()


@pytest.fixture
def order(shop, place_order):
    return place_order(shop.customer, [(shop.product, 2, None)], address=shop.address, intent_id="pi_1")


def test_payment_succeeded_confirms_order(db, shop, order):
    outcome = WebhookReconciler(db).apply(_event(PaymentEventKind.PAYMENT_SUCCEEDED, "pi_1"))

    assert outcome.result == APPLIED
    db.expire_all()
    assert order.status == "confirmed"
    assert order.payment_status == "paid"
    assert order.paid_at is not None
    assert _payment(db, order.id).status == "paid"
    assert [i.status for i in _items(db, order.id)] == ["confirmed"]
    #50.00 - 7.50 prowizji
    assert _balance(db, shop.vendor.id) == Decimal("42.50")

    titles = [n.title for n in db.execute(select(NotificationModel)).scalars()]
    assert "Order Confirmed" in titles


def test_duplicate_success_is_noop(db, shop, order):
    reconciler = WebhookReconciler(db)
    reconciler.apply(_event(PaymentEventKind.PAYMENT_SUCCEEDED, "pi_1", "evt_1"))

    outcome = reconciler.apply(_event(PaymentEventKind.PAYMENT_SUCCEEDED, "pi_1", "evt_1"))

    assert outcome.result == SKIPPED
    assert _balance(db, shop.vendor.id) == Decimal("42.50")
    confirmations = db.execute(
        select(NotificationModel).where(NotificationModel.title == "Order Confirmed")
    ).scalars().all()
    assert len(confirmations) == 1


def test_late_failure_after_success_is_ignored(db, order):
    reconciler = WebhookReconciler(db)
    reconciler.apply(_event(PaymentEventKind.PAYMENT_SUCCEEDED, "pi_1", "evt_1"))

    outcome = reconciler.apply(_event(PaymentEventKind.PAYMENT_FAILED, "pi_1", "evt_0", "declined"))

    assert outcome.result == SKIPPED
    db.expire_all()
    assert order.payment_status == "paid"
    assert _payment(db, order.id).failure_reason is None


def test_failure_keeps_order_pending(db, order):
    outcome = WebhookReconciler(db).apply(
        _event(PaymentEventKind.PAYMENT_FAILED, "pi_1", failure_message="Your card was declined.")
    )

    assert outcome.result == APPLIED
    db.expire_all()
    assert order.status == "pending"
    assert order.payment_status == "failed"
    payment = _payment(db, order.id)
    assert payment.status == "failed"
    assert payment.failure_reason == "Your card was declined."
    titles = [n.title for n in db.execute(select(NotificationModel)).scalars()]
    assert "Payment Failed" in titles


def test_success_after_failure_confirms(db, shop, order):
    reconciler = WebhookReconciler(db)
    reconciler.apply(_event(PaymentEventKind.PAYMENT_FAILED, "pi_1", "evt_1", "declined"))

    outcome = reconciler.apply(_event(PaymentEventKind.PAYMENT_SUCCEEDED, "pi_1", "evt_2"))

    assert outcome.result == APPLIED
    db.expire_all()
    assert order.status == "confirmed"
    assert order.payment_status == "paid"
    assert _payment(db, order.id).failure_reason is None
    assert _balance(db, shop.vendor.id) == Decimal("42.50")


def test_refund_restores_inventory_and_reverses_balance(db, shop, order):
    reconciler = WebhookReconciler(db)
    reconciler.apply(_event(PaymentEventKind.PAYMENT_SUCCEEDED, "pi_1", "evt_1"))
    assert InventoryLedger(db).available(shop.product.id) == 8

    outcome = reconciler.apply(_event(PaymentEventKind.CHARGE_REFUNDED, "pi_1", "evt_2"))

    assert outcome.result == APPLIED
    db.expire_all()
    assert order.status == "refunded"
    assert order.payment_status == "refunded"
    assert _payment(db, order.id).status == "refunded"
    assert [i.status for i in _items(db, order.id)] == ["refunded"]
    assert InventoryLedger(db).available(shop.product.id) == 10
    assert _balance(db, shop.vendor.id) == Decimal("0.00")


def test_duplicate_refund_does_not_restock_twice(db, shop, order):
    reconciler = WebhookReconciler(db)
    reconciler.apply(_event(PaymentEventKind.PAYMENT_SUCCEEDED, "pi_1", "evt_1"))
    reconciler.apply(_event(PaymentEventKind.CHARGE_REFUNDED, "pi_1", "evt_2"))

    outcome = reconciler.apply(_event(PaymentEventKind.CHARGE_REFUNDED, "pi_1", "evt_2"))

    assert outcome.result == SKIPPED
    assert InventoryLedger(db).available(shop.product.id) == 10
    assert _balance(db, shop.vendor.id) == Decimal("0.00")


def test_refund_of_unpaid_order_does_not_touch_balance(db, shop, order):
    outcome = WebhookReconciler(db).apply(_event(PaymentEventKind.CHARGE_REFUNDED, "pi_1"))

    assert outcome.result == APPLIED
    assert _balance(db, shop.vendor.id) == Decimal("0.00")
    assert InventoryLedger(db).available(shop.product.id) == 10


def test_success_after_refund_is_ignored(db, shop, order):
    reconciler = WebhookReconciler(db)
    reconciler.apply(_event(PaymentEventKind.CHARGE_REFUNDED, "pi_1", "evt_2"))

    outcome = reconciler.apply(_event(PaymentEventKind.PAYMENT_SUCCEEDED, "pi_1", "evt_1"))

    assert outcome.result == SKIPPED
    db.expire_all()
    assert order.status == "refunded"
    assert _balance(db, shop.vendor.id) == Decimal("0.00")


def test_multi_vendor_order_credits_each_vendor(db, factory, shop, place_order):
    other_vendor = factory.vendor(commission_rate=Decimal("10"))
    gadget = factory.product(other_vendor, price="10.00", quantity=5, name="Gadget")
    order = place_order(shop.customer, [(shop.product, 1, None), (gadget, 3, None)], intent_id="pi_multi")

    WebhookReconciler(db).apply(_event(PaymentEventKind.PAYMENT_SUCCEEDED, "pi_multi"))

    assert _balance(db, shop.vendor.id) == Decimal("21.25")
    assert _balance(db, other_vendor.id) == Decimal("27.00")
    assert {i.status for i in _items(db, order.id)} == {"confirmed"}


def test_unknown_intent_is_acknowledged(db):
    outcome = WebhookReconciler(db).apply(_event(PaymentEventKind.PAYMENT_SUCCEEDED, "pi_nope"))

    assert outcome.result == UNKNOWN_INTENT


def test_unrecognized_event_is_ignored(db):
    outcome = WebhookReconciler(db).apply(_event(PaymentEventKind.UNRECOGNIZED, None))

    assert outcome.result == IGNORED


def test_internal_error_rolls_back(db, shop, order):
    class BrokenBalance:
        def credit(self, vendor_id, amount):
            raise RuntimeError("ledger down")

    with pytest.raises(RuntimeError):
        WebhookReconciler(db, balance=BrokenBalance()).apply(_event(PaymentEventKind.PAYMENT_SUCCEEDED, "pi_1"))

    assert _payment(db, order.id).status == "pending"
    db.expire_all()
    assert order.status == "pending"

    #ponowienie przez providera przechodzi normalnie
    outcome = WebhookReconciler(db).apply(_event(PaymentEventKind.PAYMENT_SUCCEEDED, "pi_1"))
    assert outcome.result == APPLIED
