import json
from decimal import Decimal

from conftest import post_webhook, provider_event, sign
from marketplace.services.webhook_reconciler import WebhookReconciler


def test_payment_succeeded_webhook(client, db, shop, place_order):
    order = place_order(shop.customer, [(shop.product, 1, None)], address=shop.address, intent_id="pi_1")

    r = post_webhook(client, provider_event("payment_intent.succeeded", "pi_1"))

    assert r.status_code == 200
    assert r.json() == {"received": True}
    db.expire_all()
    assert order.status == "confirmed"


def test_bad_signature_is_rejected(client, db, shop, place_order):
    order = place_order(shop.customer, [(shop.product, 1, None)], address=shop.address, intent_id="pi_1")
    payload = json.dumps(provider_event("payment_intent.succeeded", "pi_1"))

    r = client.post(
        "/webhooks/payments",
        content=payload,
        headers={"Stripe-Signature": sign(payload, secret="whsec_wrong"), "Content-Type": "application/json"},
    )

    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "signature_invalid"
    db.expire_all()
    assert order.status == "pending"


def test_missing_signature_is_rejected(client):
    r = client.post("/webhooks/payments", content=b"{}", headers={"Content-Type": "application/json"})

    assert r.status_code == 400


def test_non_utf8_body_is_rejected(client, event_cache):
    r = client.post(
        "/webhooks/payments",
        content=b'{"id":"evt_1","type":"x\xff"}',
        headers={"Stripe-Signature": "t=1,v1=abc", "Content-Type": "application/json"},
    )

    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "signature_invalid"
    assert event_cache.processed == set()


def test_unknown_event_type_is_acknowledged(client):
    r = post_webhook(client, {"id": "evt_x", "type": "customer.created", "data": {"object": {"id": "cus_1"}}})

    assert r.status_code == 200
    assert r.json() == {"received": True}


def test_unknown_intent_is_acknowledged(client):
    r = post_webhook(client, provider_event("payment_intent.succeeded", "pi_missing"))

    assert r.status_code == 200


def test_processed_event_is_short_circuited(client, event_cache, shop, place_order, monkeypatch):
    place_order(shop.customer, [(shop.product, 1, None)], address=shop.address, intent_id="pi_1")
    event = provider_event("payment_intent.succeeded", "pi_1", event_id="evt_once")

    assert post_webhook(client, event).status_code == 200
    assert "evt_once" in event_cache.processed

    calls = []
    monkeypatch.setattr(WebhookReconciler, "apply", lambda self, e: calls.append(e))

    assert post_webhook(client, event).status_code == 200
    assert calls == []


def test_redelivery_without_cache_is_still_idempotent(client, db, event_cache, shop, place_order):
    place_order(shop.customer, [(shop.product, 2, None)], address=shop.address, intent_id="pi_1")
    event = provider_event("payment_intent.succeeded", "pi_1", event_id="evt_1")

    post_webhook(client, event)
    #redis wyczyszczony / niedostepny
    event_cache.processed.clear()
    r = post_webhook(client, event)

    assert r.status_code == 200
    db.expire_all()
    assert shop.vendor.pending_balance == Decimal("42.50")


def test_internal_error_returns_500(client, event_cache, shop, place_order, monkeypatch):
    place_order(shop.customer, [(shop.product, 1, None)], address=shop.address, intent_id="pi_1")

    def boom(self, event):
        raise RuntimeError("db down")

    monkeypatch.setattr(WebhookReconciler, "apply", boom)

    r = post_webhook(client, provider_event("payment_intent.succeeded", "pi_1", event_id="evt_fail"))

    assert r.status_code == 500
    assert "evt_fail" not in event_cache.processed
