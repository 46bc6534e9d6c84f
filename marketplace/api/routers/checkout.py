#marketplace/api/routers/checkout.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from marketplace.api.deps import get_gateway
from marketplace.data.database import get_db
from marketplace.domain.errors import DomainError
from marketplace.domain.schemas import CheckoutIn, CheckoutOut, PaymentIntentIn, PaymentIntentOut
from marketplace.services.checkout_service import CheckoutService
from marketplace.services.payment_gateway import PaymentGatewayAdapter

router = APIRouter(prefix="/checkout", tags=["checkout"])


def get_service(db: Session, gateway: PaymentGatewayAdapter):
    return CheckoutService(db=db, gateway=gateway)


@router.post("", response_model=CheckoutOut, status_code=201)
def place_order(
    payload: CheckoutIn,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    gateway: PaymentGatewayAdapter = Depends(get_gateway),
):
    """
    Tworzy zamowienie z koszyka (rezerwacja stanow w tej samej transakcji).
    Platnosc potwierdza webhook.
    """
    svc = get_service(db, gateway)
    try:
        return svc.place_order(
            user_id=user_id,
            shipping_address_id=payload.shipping_address_id,
            billing_address_id=payload.billing_address_id,
            shipping_method_id=payload.shipping_method_id,
            payment_intent_id=payload.payment_intent_id,
            notes=payload.notes,
        )
    except DomainError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/payment-intent", response_model=PaymentIntentOut)
def create_payment_intent(
    payload: PaymentIntentIn,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    gateway: PaymentGatewayAdapter = Depends(get_gateway),
):
    svc = get_service(db, gateway)
    try:
        return svc.create_payment_intent(
            user_id=user_id,
            shipping_address_id=payload.shipping_address_id,
            shipping_method_id=payload.shipping_method_id,
        )
    except DomainError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
