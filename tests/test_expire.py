from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from marketplace.data.models import NotificationModel
from marketplace.domain.states import PaymentEventKind
from marketplace.repos.order_repo import OrderRepo
from marketplace.services.inventory_ledger import InventoryLedger
from marketplace.services.payment_gateway import NormalizedEvent
from marketplace.services.vendor_state_machine import VendorOrderStateMachine
from marketplace.services.webhook_reconciler import WebhookReconciler
from marketplace.tasks.expire import expire_unpaid_orders


def _later(days=2):
    return datetime.now(timezone.utc) + timedelta(days=days)


def _event(kind, raw_type, intent_id, event_id):
    return NormalizedEvent(event_id, kind, raw_type, intent_id, "declined")


def test_stale_unpaid_order_is_cancelled(db, shop, place_order):
    order = place_order(shop.customer, [(shop.product, 4, None)], address=shop.address)
    assert InventoryLedger(db).available(shop.product.id) == 6

    assert expire_unpaid_orders(db, now=_later()) == 1

    db.expire_all()
    assert order.status == "cancelled"
    assert order.cancelled_at is not None
    assert [i.status for i in OrderRepo(db).get_items(order.id)] == ["cancelled"]
    assert InventoryLedger(db).available(shop.product.id) == 10

    note = db.execute(select(NotificationModel).where(NotificationModel.title == "Order Cancelled")).scalar_one()
    assert note.user_id == shop.customer.id


def test_failed_payment_order_expires_too(db, shop, place_order):
    order = place_order(shop.customer, [(shop.product, 1, None)], address=shop.address, intent_id="pi_f")
    WebhookReconciler(db).apply(
        _event(PaymentEventKind.PAYMENT_FAILED, "payment_intent.payment_failed", "pi_f", "evt_f")
    )

    assert expire_unpaid_orders(db, now=_later()) == 1

    db.expire_all()
    assert order.status == "cancelled"


def test_fresh_order_is_kept(db, shop, place_order):
    order = place_order(shop.customer, [(shop.product, 1, None)], address=shop.address)

    assert expire_unpaid_orders(db) == 0

    db.expire_all()
    assert order.status == "pending"


def test_paid_order_is_kept(db, shop, place_order):
    order = place_order(shop.customer, [(shop.product, 1, None)], address=shop.address, intent_id="pi_p")
    WebhookReconciler(db).apply(
        _event(PaymentEventKind.PAYMENT_SUCCEEDED, "payment_intent.succeeded", "pi_p", "evt_p")
    )

    assert expire_unpaid_orders(db, now=_later()) == 0

    db.expire_all()
    assert order.status == "confirmed"
    assert InventoryLedger(db).available(shop.product.id) == 9


def test_order_in_fulfilment_is_skipped(db, shop, place_order):
    blocked = place_order(shop.customer, [(shop.product, 1, None)], address=shop.address)
    VendorOrderStateMachine(db).vendor_transition(OrderRepo(db).get_items(blocked.id)[0], "processing")
    db.commit()
    other = place_order(shop.customer, [(shop.product, 1, None)], address=shop.address)

    assert expire_unpaid_orders(db, now=_later()) == 1

    db.expire_all()
    assert blocked.status == "pending"
    assert other.status == "cancelled"
    assert InventoryLedger(db).available(shop.product.id) == 9


def test_database_error_on_one_order_does_not_stop_batch(db, shop, place_order, monkeypatch):
    broken = place_order(shop.customer, [(shop.product, 1, None)], address=shop.address)
    healthy = place_order(shop.customer, [(shop.product, 2, None)], address=shop.address)
    broken_id = broken.id
    cancel_items = VendorOrderStateMachine.cancel_items

    def flaky_cancel(self, order_id, from_statuses, now):
        if order_id == broken_id:
            raise OperationalError("UPDATE order_items", {}, Exception("disk I/O error"))
        return cancel_items(self, order_id, from_statuses, now)

    monkeypatch.setattr(VendorOrderStateMachine, "cancel_items", flaky_cancel)

    assert expire_unpaid_orders(db, now=_later()) == 1

    db.expire_all()
    assert broken.status == "pending"
    assert healthy.status == "cancelled"
    assert InventoryLedger(db).available(shop.product.id) == 9
    titles = [n.title for n in db.execute(select(NotificationModel)).scalars()]
    assert titles.count("Order Cancelled") == 1
