"""
Shopfloor Module Configuration

Table, order and kitchen coordination for shops and restaurants.
"""
from django.utils.translation import gettext_lazy as _

MODULE_ID = "shopfloor"
MODULE_NAME = _("Shopfloor: Tables, Orders & Kitchen")
MODULE_VERSION = "1.0.0"

# Defaults for the SHOPFLOOR settings dict (see shopfloor.conf)
SETTINGS = {
    "PAYMENT_GATEWAY": "shopfloor.payments.StripeGateway",
    "STRIPE_SECRET_KEY": "",
    "DEFAULT_CURRENCY": "usd",
    "CACHE_ALIAS": "default",
    "SUBSCRIBER_QUEUE_SIZE": 100,
    "RECONNECT_BASE_DELAY": 1.0,
    "RECONNECT_MAX_ATTEMPTS": 5,
    "POLL_INTERVAL": 30.0,
    "PREDICTION_INTERVAL": 60.0,
}
