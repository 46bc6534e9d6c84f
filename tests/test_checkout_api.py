from decimal import Decimal

from sqlalchemy import func, select, update

from marketplace.data.models import OrderModel, ProductModel
from marketplace.repos.cart_repo import CartRepo
from marketplace.services.inventory_ledger import InventoryLedger


def _checkout_payload(shop, intent_id="pi_test_1", method="standard"):
    return {
        "shippingAddressId": shop.address.id,
        "billingAddressId": shop.address.id,
        "shippingMethodId": method,
        "paymentIntentId": intent_id,
    }


def test_payment_intent_for_cart_total(client, factory, gateway, shop):
    factory.cart_line(shop.customer, shop.product, 2)

    r = client.post(
        f"/checkout/payment-intent?user_id={shop.customer.id}",
        json={"shippingAddressId": shop.address.id, "shippingMethodId": "standard"},
    )

    assert r.status_code == 200, r.text
    body = r.json()
    assert body["paymentIntentId"] == "pi_test_1"
    assert body["clientSecret"] == "pi_test_1_secret"
    #50.00 + 4.00 podatku + 9.99 wysylki
    assert Decimal(body["amount"]) == Decimal("63.99")
    assert body["currency"] == "USD"
    assert gateway.created[0]["amount"] == 6399
    assert gateway.created[0]["metadata"]["user_id"] == str(shop.customer.id)


def test_payment_intent_for_empty_cart(client, gateway, shop):
    r = client.post(
        f"/checkout/payment-intent?user_id={shop.customer.id}",
        json={"shippingAddressId": shop.address.id, "shippingMethodId": "standard"},
    )

    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "empty_cart"
    assert gateway.created == []


def test_place_order(client, db, factory, shop):
    factory.cart_line(shop.customer, shop.product, 2)

    r = client.post(f"/checkout?user_id={shop.customer.id}", json=_checkout_payload(shop))

    assert r.status_code == 201, r.text
    body = r.json()
    assert body["orderNumber"].startswith("BK-")
    assert Decimal(body["total"]) == Decimal("63.99")

    db.expire_all()
    order = db.get(OrderModel, body["orderId"])
    assert order.user_id == shop.customer.id
    assert order.shipping_address["city"] == "Springfield"
    assert InventoryLedger(db).available(shop.product.id) == 8
    assert CartRepo(db).get_lines(shop.customer.id) == []


def test_checkout_rejects_clamped_cart(client, db, factory, shop):
    factory.cart_line(shop.customer, shop.product, 5)
    db.execute(update(ProductModel).where(ProductModel.id == shop.product.id).values(quantity=3))
    db.commit()

    r = client.post(f"/checkout?user_id={shop.customer.id}", json=_checkout_payload(shop))

    assert r.status_code == 409
    detail = r.json()["detail"]
    assert detail["code"] == "insufficient_stock"
    assert detail["available"] == 3
    assert db.execute(select(func.count()).select_from(OrderModel)).scalar_one() == 0


def test_checkout_rejects_sold_out_only_line(client, db, factory, shop):
    factory.cart_line(shop.customer, shop.product, 1)
    db.execute(update(ProductModel).where(ProductModel.id == shop.product.id).values(quantity=0))
    db.commit()

    r = client.post(f"/checkout?user_id={shop.customer.id}", json=_checkout_payload(shop))

    assert r.status_code == 409
    assert r.json()["detail"]["available"] == 0


def test_checkout_with_foreign_address(client, factory, shop):
    factory.cart_line(shop.customer, shop.product, 1)
    stranger = factory.user("Mallory")
    foreign = factory.address(stranger)
    payload = dict(_checkout_payload(shop), shippingAddressId=foreign.id)

    r = client.post(f"/checkout?user_id={shop.customer.id}", json=payload)

    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "invalid_address"


def test_checkout_with_unknown_shipping_method(client, factory, shop):
    factory.cart_line(shop.customer, shop.product, 1)

    r = client.post(f"/checkout?user_id={shop.customer.id}", json=_checkout_payload(shop, method="teleport"))

    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "invalid_shipping_method"


def test_same_intent_twice(client, factory, shop):
    factory.cart_line(shop.customer, shop.product, 1)
    assert client.post(f"/checkout?user_id={shop.customer.id}", json=_checkout_payload(shop)).status_code == 201

    factory.cart_line(shop.customer, shop.product, 1)
    r = client.post(f"/checkout?user_id={shop.customer.id}", json=_checkout_payload(shop))

    assert r.status_code == 409
    assert r.json()["detail"]["code"] == "payment_intent_in_use"
