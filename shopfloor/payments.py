"""
Payment gateway boundary.

The core only records the outcome of a payment (method, completion time).
Gateways create the client-side intent; the client confirms it and then
calls complete-payment.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP

import stripe
from django.utils.module_loading import import_string

from .conf import get_setting
from .exceptions import PaymentFailed

logger = logging.getLogger(__name__)


class PaymentGateway:

    def create_payment_intent(self, amount: Decimal, currency: str, metadata=None) -> str:
        """Return the client secret of a new payment intent."""
        raise NotImplementedError


def to_minor_units(amount):
    """Decimal amount to integer cents."""
    return int((Decimal(amount) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


class StripeGateway(PaymentGateway):

    def __init__(self, api_key=None):
        self.api_key = api_key if api_key is not None else get_setting('STRIPE_SECRET_KEY')

    def create_payment_intent(self, amount, currency, metadata=None):
        if Decimal(amount) <= 0:
            raise PaymentFailed('Payment amount must be greater than zero')
        try:
            intent = stripe.PaymentIntent.create(
                amount=to_minor_units(amount),
                currency=currency.lower(),
                metadata=metadata or {},
                automatic_payment_methods={'enabled': True},
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            logger.error("Failed to create Stripe payment intent for %s %s: %s", amount, currency, e)
            raise PaymentFailed(
                getattr(e, 'user_message', None) or 'Payment provider is unavailable'
            )

        logger.info("Created Stripe payment intent %s for %s %s", intent.id, amount, currency)
        return intent.client_secret


def get_gateway() -> PaymentGateway:
    return import_string(get_setting('PAYMENT_GATEWAY'))()
