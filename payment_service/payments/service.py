"""
Cas d'usage 'payments': orchestre repository, credentials, devises, lignes et Stripe.
- initiate_payment: crée le PaymentIntent d'une facture et mémorise sa référence (ne lève jamais).
- build_checkout: construit une session Checkout hébergée pour une facture et retourne son URL.
"""
from typing import Callable, List, Optional, Tuple
import logging
import uuid

from . import credentials
from . import repository
from . import stripe_client
from .currency import CurrencyCodec, to_minor_units
from .errors import EmptyCheckout, IntentNotFound, InvoiceNotFound, UpstreamRejected
from .line_items import assemble_line_items
from .models import Invoice

logger = logging.getLogger(__name__)


class Compensations:
    """
    Actions d'annulation des effets de bord Stripe déjà produits, rejouées en ordre inverse.
    Une compensation qui échoue est journalisée avec ses identifiants (orphelin à traiter à la main).
    """

    def __init__(self):
        self._actions: List[Tuple[str, Callable[[], None]]] = []

    def add(self, label: str, action: Callable[[], None]) -> None:
        self._actions.append((label, action))

    def run(self) -> List[str]:
        orphans: List[str] = []
        for label, action in reversed(self._actions):
            try:
                action()
                logger.info("payments.compensation done %s", label)
            except Exception:
                logger.exception("payments.compensation failed orphan=%s", label)
                orphans.append(label)
        self._actions.clear()
        return orphans


# module payment_service.payments.service
def initiate_payment(
    *,
    invoice_id: str,
    amount: int,
    currency: str,
    success_url: str,
    cancel_url: str,
    tenant_id: str,
    codec: Optional[CurrencyCodec] = None,
) -> bool:
    """
    Crée le PaymentIntent Stripe de la facture puis pose sa référence sur la facture.
    - amount en unités mineures; currency: symbole ou code, normalisé par le codec.
    - successUrl/cancelUrl voyagent dans les metadata de l'intent (relus par le webhook)
      et sont aussi recopiés sur la facture.
    Retour: True si accepté, False sinon (cause journalisée, aucune exception ne sort).
    """
    codec = codec or CurrencyCodec.from_config()
    try:
        secret = credentials.resolve_secret(tenant_id)
        currency_code = codec.symbol_to_code(currency)
        intent_id = stripe_client.create_intent(
            secret,
            amount=amount,
            currency=currency_code,
            metadata={"invoiceId": invoice_id, "successUrl": success_url, "cancelUrl": cancel_url},
        )
    except Exception:
        logger.exception("Erreur initiate_payment invoice_id=%s tenant_id=%s", invoice_id, tenant_id)
        return False

    try:
        repository.set_intent_reference(invoice_id, intent_id, success_url=success_url, cancel_url=cancel_url)
    except Exception:
        # L'intent existe côté Stripe sans référence locale
        logger.exception("Erreur initiate_payment persistence invoice_id=%s orphan_intent=%s", invoice_id, intent_id)
        return False

    logger.info("payments.initiate ok invoice_id=%s intent_id=%s", invoice_id, intent_id)
    return True


def _redirect_targets(secret: str, invoice: Invoice) -> Tuple[str, str]:
    """
    (success_url, cancel_url) enregistrés à la création de l'intent.
    - Référence absente -> IntentNotFound.
    - URLs recopiées sur la facture -> utilisées sans aller-retour Stripe.
    - Sinon relecture de l'intent (référence périmée -> IntentNotFound).
    """
    if not invoice.intent_reference:
        raise IntentNotFound(f"Aucun intent pour la facture {invoice.id}")
    if invoice.success_url and invoice.cancel_url:
        return invoice.success_url, invoice.cancel_url
    metadata = stripe_client.retrieve_intent(secret, invoice.intent_reference)
    success_url = invoice.success_url or metadata.get("successUrl") or ""
    cancel_url = invoice.cancel_url or metadata.get("cancelUrl") or ""
    if not success_url:
        raise IntentNotFound(f"Intent {invoice.intent_reference} sans successUrl")
    return success_url, cancel_url


def _create_discount_coupon(secret: str, invoice: Invoice, amount_off: int, currency_code: str) -> str:
    """
    Coupon de remise, dédupliqué par clé d'idempotence dans la fenêtre courante.
    Si la clé rejoue un coupon supprimé par une compensation, une nouvelle clé est tirée.
    """
    key = stripe_client.idempotency_key("coupon", invoice.id, amount_off, currency_code)
    coupon_id = stripe_client.create_coupon(secret, amount_off=amount_off, currency=currency_code, idempotency_key=key)
    if stripe_client.coupon_exists(secret, coupon_id):
        return coupon_id
    logger.info("payments.checkout coupon %s deleted since creation, rekeying invoice_id=%s", coupon_id, invoice.id)
    return stripe_client.create_coupon(
        secret,
        amount_off=amount_off,
        currency=currency_code,
        idempotency_key=f"{key}:{uuid.uuid4().hex[:12]}",
    )


def build_checkout(
    invoice_id: str,
    referrer_url: Optional[str] = None,
    codec: Optional[CurrencyCodec] = None,
) -> str:
    """
    Construit la session Checkout de la facture et retourne l'URL de redirection.
    Étapes:
      1) facture (InvoiceNotFound)
      2) code devise via le codec
      3) produits distincts du lot de commande, puis lignes + remise (EmptyCheckout si aucune ligne)
      4) secret du tenant (CredentialNotFound propagée)
      5) URLs enregistrées à la création de l'intent (IntentNotFound)
      6) coupon unique si remise > 0, créé avant la session qui le référence
      7) session Checkout: success = URL de l'intent, cancel = referrer sinon URL de l'intent
    Tout échec interrompt l'opération; si la session échoue après le coupon, le coupon est supprimé.
    """
    codec = codec or CurrencyCodec.from_config()

    invoice = repository.get_invoice(invoice_id)
    if invoice is None:
        raise InvoiceNotFound(f"Facture introuvable: {invoice_id}")

    currency_code = codec.symbol_to_code(invoice.currency)

    product_ids = repository.list_product_ids_for_batch(invoice.order_batch_id) if invoice.order_batch_id else []
    products = repository.list_products(product_ids)
    line_items, discount = assemble_line_items(products, currency_code, invoice.lines)
    # Rejet métier sans appel externe: précède la lecture du secret tenant
    if not line_items:
        raise EmptyCheckout(f"Aucun article payable pour la facture {invoice_id} (remise={discount})")

    secret = credentials.resolve_secret(invoice.tenant_id)
    success_url, recorded_cancel_url = _redirect_targets(secret, invoice)
    cancel_url = referrer_url or recorded_cancel_url

    stripe_items = [item.to_stripe() for item in line_items]
    metadata = {
        "invoiceId": invoice.id,
        "companyId": invoice.tenant_id,
        "returnUrl": referrer_url or "",
    }

    compensations = Compensations()
    try:
        coupon_id = None
        amount_off = to_minor_units(discount)
        if amount_off > 0:
            coupon_id = _create_discount_coupon(secret, invoice, amount_off, currency_code)
            compensations.add(
                f"coupon:{coupon_id} invoice_id={invoice.id} tenant_id={invoice.tenant_id}",
                lambda: stripe_client.delete_coupon(secret, coupon_id),
            )

        session = stripe_client.create_checkout_session(
            secret,
            line_items=stripe_items,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
            coupon_id=coupon_id,
            idempotency_key=stripe_client.idempotency_key(
                "checkout", invoice.id, stripe_items, success_url, cancel_url, coupon_id, metadata
            ),
        )
        if not session.get("url"):
            raise UpstreamRejected(f"Session Stripe sans URL: {session.get('id')}")
    except Exception:
        logger.exception("Erreur build_checkout invoice_id=%s tenant_id=%s", invoice.id, invoice.tenant_id)
        compensations.run()
        raise

    logger.info(
        "payments.checkout created session_id=%s invoice_id=%s tenant_id=%s items=%s discount=%s",
        session.get("id"), invoice.id, invoice.tenant_id, len(stripe_items), discount,
    )
    return session["url"]
