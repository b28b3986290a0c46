"""
Taxonomie d'erreurs de la feature 'payments'.
- NotFound: facture, intent ou credential absent -> "rien ici", pas une faute serveur.
- InvalidSignature: webhook non authentifié, rejeté sans toucher à l'état.
- UpstreamRejected: Stripe a refusé la requête (pas de retry automatique).
- PersistenceFailure: store injoignable ou écriture refusée.
- UnknownCurrency / EmptyCheckout: rejets métier avant tout appel Stripe.
Les services lèvent ces erreurs; seule la couche HTTP (views) les traduit en réponses.
"""


class PaymentError(Exception):
    code = "payment_error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        if code:
            self.code = code


class NotFound(PaymentError):
    code = "not_found"


class InvoiceNotFound(NotFound):
    code = "invoice_not_found"


class IntentNotFound(NotFound):
    code = "intent_not_found"


class CredentialNotFound(NotFound):
    code = "credential_not_found"


class InvalidSignature(PaymentError):
    code = "invalid_signature"


class UpstreamRejected(PaymentError):
    code = "upstream_rejected"


class PersistenceFailure(PaymentError):
    code = "persistence_failure"


class UnknownCurrency(PaymentError):
    code = "unknown_currency"


class EmptyCheckout(PaymentError):
    """Lot sans aucun produit à prix positif: Stripe exige au moins une ligne."""
    code = "empty_checkout"
