"""
Module 'payments' (feature-first): point d'entrée public.
Réunit devises, lignes Checkout, credentials tenant, client Stripe, repository et services.
"""

from .currency import CurrencyCodec, to_minor_units
from .line_items import assemble_line_items
from .credentials import resolve_secret
from .service import initiate_payment, build_checkout, Compensations
from .webhooks import parse_payment_event, reconcile, handle_processor_callback
from .errors import (
    PaymentError,
    NotFound,
    InvoiceNotFound,
    IntentNotFound,
    CredentialNotFound,
    InvalidSignature,
    UpstreamRejected,
    PersistenceFailure,
    UnknownCurrency,
    EmptyCheckout,
)

__all__ = [
    # devises / lignes
    "CurrencyCodec",
    "to_minor_units",
    "assemble_line_items",
    # credentials
    "resolve_secret",
    # services
    "initiate_payment",
    "build_checkout",
    "Compensations",
    # webhook
    "parse_payment_event",
    "reconcile",
    "handle_processor_callback",
    # erreurs
    "PaymentError",
    "NotFound",
    "InvoiceNotFound",
    "IntentNotFound",
    "CredentialNotFound",
    "InvalidSignature",
    "UpstreamRejected",
    "PersistenceFailure",
    "UnknownCurrency",
    "EmptyCheckout",
]
