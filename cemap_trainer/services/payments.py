"""
Payment service: Stripe PaymentIntents in, entitlements out.

The client only ever sends a product name (to create an intent) or an
intent id (to verify one). Amount, currency, product and owner are all
read back from the gateway's own record of the intent and checked
against the server-side price catalog before anything is issued.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

import stripe

from cemap_trainer.core.config import Settings
from cemap_trainer.core.exceptions import (
    PaymentGatewayError,
    PaymentIntegrityError,
    PaymentsUnavailableError,
)
from cemap_trainer.models.orm import AccessToken, Product, User
from .entitlements import EntitlementStore

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"


@dataclass
class PaymentRecord:
    """The subset of a PaymentIntent the service relies on."""
    id: str
    status: str
    amount: int
    currency: str
    metadata: Dict[str, str] = field(default_factory=dict)
    client_secret: Optional[str] = None


class PaymentGateway(Protocol):
    def create_intent(self, amount: int, currency: str, metadata: Dict[str, str]) -> PaymentRecord: ...

    def retrieve_intent(self, payment_intent_id: str) -> PaymentRecord: ...


class StripeGateway:
    """Thin wrapper over the two Stripe calls the server needs."""

    def __init__(self, secret_key: str):
        self._api_key = secret_key

    def create_intent(self, amount: int, currency: str, metadata: Dict[str, str]) -> PaymentRecord:
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency,
                metadata=metadata,
                automatic_payment_methods={"enabled": True},
                api_key=self._api_key,
            )
        except stripe.StripeError as e:
            logger.error("Stripe create failed: %s", e)
            raise PaymentGatewayError("Payment provider error") from e
        return self._to_record(intent)

    def retrieve_intent(self, payment_intent_id: str) -> PaymentRecord:
        try:
            intent = stripe.PaymentIntent.retrieve(payment_intent_id, api_key=self._api_key)
        except stripe.InvalidRequestError as e:
            raise PaymentIntegrityError("Unknown payment", payment_intent_id) from e
        except stripe.StripeError as e:
            logger.error("Stripe retrieve failed for %s: %s", payment_intent_id, e)
            raise PaymentGatewayError("Payment provider error") from e
        return self._to_record(intent)

    @staticmethod
    def _to_record(intent) -> PaymentRecord:
        metadata = intent["metadata"] or {}
        return PaymentRecord(
            id=intent["id"],
            status=intent["status"],
            amount=intent["amount"],
            currency=intent["currency"],
            metadata={k: str(v) for k, v in dict(metadata).items()},
            client_secret=intent["client_secret"],
        )


def price_catalog(settings: Settings) -> Dict[Product, int]:
    """Prices in minor units (pence)."""
    return {
        Product.EXAM: settings.PRICE_EXAM_PENCE,
        Product.SCENARIO: settings.PRICE_SCENARIO_PENCE,
        Product.BUNDLE: settings.PRICE_BUNDLE_PENCE,
    }


class PaymentService:
    def __init__(
        self,
        gateway: Optional[PaymentGateway],
        entitlements: EntitlementStore,
        settings: Settings,
    ):
        self.gateway = gateway
        self.entitlements = entitlements
        self.currency = settings.PAYMENT_CURRENCY.lower()
        self.prices = price_catalog(settings)

    def _require_gateway(self) -> PaymentGateway:
        if self.gateway is None:
            raise PaymentsUnavailableError("Payments are not configured")
        return self.gateway

    def create_payment_intent(self, product: Product, user: User) -> PaymentRecord:
        gateway = self._require_gateway()
        product = Product(product)
        amount = self.prices[product]

        record = gateway.create_intent(
            amount=amount,
            currency=self.currency,
            metadata={"product": product.value, "user_id": user.id},
        )
        logger.info("Created payment intent %s: %s for user %s (%d %s)",
                    record.id, product.value, user.id, amount, self.currency)
        return record

    def verify_payment(self, payment_intent_id: str, user: User) -> AccessToken:
        """Exchange a completed payment for an access token.

        Replays of an already verified intent return the stored token.
        """
        gateway = self._require_gateway()
        record = gateway.retrieve_intent(payment_intent_id)

        def reject(reason: str):
            logger.warning("Rejected payment %s for user %s: %s", payment_intent_id, user.id, reason)
            raise PaymentIntegrityError(reason, payment_intent_id)

        if record.status != SUCCEEDED:
            reject(f"Payment not completed (status: {record.status})")

        product_value = record.metadata.get("product")
        if product_value not in {p.value for p in Product}:
            reject("Payment is not for a known product")
        product = Product(product_value)

        if record.metadata.get("user_id") != user.id:
            reject("Payment belongs to a different user")
        if record.currency.lower() != self.currency:
            reject("Payment currency does not match")
        if record.amount != self.prices[product]:
            reject("Payment amount does not match the product price")

        return self.entitlements.issue_token(record.id, product, user.id)
