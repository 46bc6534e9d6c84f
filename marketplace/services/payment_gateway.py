# marketplace/services/payment_gateway.py
import json
from dataclasses import dataclass

import stripe

from marketplace.domain.errors import (
    InvalidPaymentAmount,
    PaymentProviderError,
    SignatureInvalid,
    ValidationFailed,
)
from marketplace.domain.states import PaymentEventKind
from marketplace.utils.retry import stripe_retry
from marketplace.utils.settings import (
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
    STRIPE_WEBHOOK_TOLERANCE,
    PAYMENT_MIN_AMOUNT,
    PAYMENT_MAX_AMOUNT,
)
from marketplace.utils.logging import get_logger

logger = get_logger(__name__)

_EVENT_KINDS = {
    "payment_intent.succeeded": PaymentEventKind.PAYMENT_SUCCEEDED,
    "payment_intent.payment_failed": PaymentEventKind.PAYMENT_FAILED,
    "charge.refunded": PaymentEventKind.CHARGE_REFUNDED,
}


@dataclass(frozen=True)
class PaymentIntent:
    intent_id: str
    client_secret: str
    amount: int
    currency: str


@dataclass(frozen=True)
class NormalizedEvent:
    event_id: str | None
    kind: PaymentEventKind
    raw_type: str
    intent_id: str | None
    failure_message: str | None = None


def normalize_event(event: dict) -> NormalizedEvent:
    """
    Event providera -> NormalizedEvent. Nieznane typy -> UNRECOGNIZED.
    """
    raw_type = str(event.get("type") or "unknown")
    event_id = event.get("id")
    obj = (event.get("data") or {}).get("object") or {}
    kind = _EVENT_KINDS.get(raw_type, PaymentEventKind.UNRECOGNIZED)

    intent_id = None
    failure_message = None

    if kind in (PaymentEventKind.PAYMENT_SUCCEEDED, PaymentEventKind.PAYMENT_FAILED):
        intent_id = obj.get("id")
        if kind == PaymentEventKind.PAYMENT_FAILED:
            last_error = obj.get("last_payment_error") or {}
            failure_message = last_error.get("message") or "Payment failed"
    elif kind == PaymentEventKind.CHARGE_REFUNDED:
        #charge.payment_intent to id albo rozwiniety obiekt
        intent = obj.get("payment_intent")
        intent_id = intent.get("id") if isinstance(intent, dict) else intent

    return NormalizedEvent(
        event_id=event_id,
        kind=kind,
        raw_type=raw_type,
        intent_id=intent_id,
        failure_message=failure_message,
    )


class PaymentGatewayAdapter:
    """
    Granica z providerem platnosci (stripe).
    - create_intent: walidacja kwoty PRZED wywolaniem zewnetrznym
    - verify_and_parse: podpis webhooka + normalizacja eventu
    Nie zmienia zadnego stanu biznesowego.
    """

    def __init__(
        self,
        api_key: str | None = None,
        webhook_secret: str | None = None,
        min_amount: int = PAYMENT_MIN_AMOUNT,
        max_amount: int = PAYMENT_MAX_AMOUNT,
        tolerance: int = STRIPE_WEBHOOK_TOLERANCE,
    ):
        self.api_key = api_key if api_key is not None else STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret if webhook_secret is not None else STRIPE_WEBHOOK_SECRET
        self.min_amount = min_amount
        self.max_amount = max_amount
        self.tolerance = tolerance

    def validate_amount(self, amount_minor: int):
        if amount_minor < self.min_amount:
            raise InvalidPaymentAmount(
                f"Minimum order amount is ${self.min_amount / 100:.2f}",
                amount=amount_minor,
                minimum=self.min_amount,
            )
        if amount_minor > self.max_amount:
            raise InvalidPaymentAmount(
                "Order amount exceeds maximum limit",
                amount=amount_minor,
                maximum=self.max_amount,
            )

    def create_intent(self, amount_minor: int, currency: str, metadata: dict) -> PaymentIntent:
        self.validate_amount(amount_minor)

        #stripe przyjmuje tylko stringi w metadata
        metadata = {key: str(value) for key, value in (metadata or {}).items()}

        try:
            intent = self._create_intent(amount_minor, currency.lower(), metadata)
        except stripe.StripeError as e:
            logger.error(f"Payment intent creation failed ({type(e).__name__}): {e}")
            raise PaymentProviderError() from e

        logger.info(f"Payment intent {intent.id} created for {amount_minor} {currency}")
        return PaymentIntent(
            intent_id=intent.id,
            client_secret=intent.client_secret,
            amount=amount_minor,
            currency=currency.upper(),
        )

    @stripe_retry()
    def _create_intent(self, amount_minor: int, currency: str, metadata: dict):
        return stripe.PaymentIntent.create(
            amount=amount_minor,
            currency=currency,
            automatic_payment_methods={"enabled": True},
            metadata=metadata,
            api_key=self.api_key,
        )

    def verify_and_parse(self, raw_body: bytes, signature_header: str | None) -> NormalizedEvent:
        if not signature_header:
            raise SignatureInvalid("Missing signature")

        if not self.webhook_secret:
            #blad konfiguracji, nie klienta - 500 i provider ponowi
            raise RuntimeError("Webhook secret is not configured")

        try:
            payload = raw_body.decode("utf-8") if isinstance(raw_body, bytes) else raw_body
        except UnicodeDecodeError as e:
            #provider podpisuje tylko JSON w utf-8
            logger.warning(f"Webhook body is not valid UTF-8: {e}")
            raise SignatureInvalid("Webhook Error: payload is not valid UTF-8") from e

        # WAŻNE: weryfikacja podpisu przed parsowaniem
        try:
            stripe.WebhookSignature.verify_header(payload, signature_header, self.webhook_secret, self.tolerance)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            raise SignatureInvalid(f"Webhook Error: {e}") from e

        try:
            event = json.loads(payload)
        except ValueError as e:
            raise ValidationFailed("Malformed webhook payload") from e

        if not isinstance(event, dict):
            raise ValidationFailed("Malformed webhook payload")

        return normalize_event(event)
