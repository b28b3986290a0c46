"""
Réconciliation des événements Stripe (webhook) vers le statut des factures.
- parse_payment_event: event Stripe brut -> variante typée (IntentSucceeded / IntentFailed / OtherEvent).
- reconcile: transitions pending -> paid / pending -> failed, idempotentes (UPDATE conditionnel).
- handle_processor_callback: signature + parsing + réconciliation (point d'entrée de la vue).
Livraison au moins une fois, dans le désordre: une transition qui ne touche aucune ligne
signifie "déjà réconciliée", pas une erreur.
"""
import logging
from typing import Any, Dict, Optional

from pydantic import TypeAdapter, ValidationError

from payment_service import config
from . import repository
from . import stripe_client
from .models import IntentFailed, IntentSucceeded, InvoiceStatus, OtherEvent, PaymentEvent

logger = logging.getLogger(__name__)

EVENT_KINDS = {
    "payment_intent.succeeded": "intent_succeeded",
    "payment_intent.payment_failed": "intent_failed",
}

_event_adapter = TypeAdapter(PaymentEvent)

# module payment_service.payments.webhooks
def parse_payment_event(event: Dict[str, Any]) -> PaymentEvent:
    """
    Valide l'événement à la frontière.
    - Attend event.type et, pour les intents, event.data.object.{id, metadata}.
    - Type non géré -> OtherEvent. Payload d'intent malformé -> OtherEvent (journalisé en erreur).
    """
    event = event or {}
    event_type = str(event.get("type") or "")
    event_id = str(event.get("id") or "")
    kind = EVENT_KINDS.get(event_type)
    if kind is None:
        return OtherEvent(event_id=event_id, event_type=event_type)
    data_obj = (event.get("data") or {}).get("object") or {}
    try:
        return _event_adapter.validate_python({"kind": kind, "event_id": event_id, "intent": data_obj})
    except ValidationError:
        logger.exception("payments.webhooks malformed %s event_id=%s", event_type, event_id)
        return OtherEvent(event_id=event_id, event_type=event_type)

def reconcile(event: PaymentEvent) -> Optional[str]:
    """
    Applique l'événement à la facture dont payment_intent_id == intent.id.
    Retour: URL de redirection (successUrl / cancelUrl des metadata, sinon celle recopiée sur
    la facture) ou None si rien à faire (type ignoré, aucune facture correspondante).
    """
    if isinstance(event, OtherEvent):
        logger.debug("payments.webhooks ignored type=%s event_id=%s", event.event_type, event.event_id)
        return None

    intent = event.intent
    invoice = repository.find_by_intent_reference(intent.id)
    if invoice is None:
        logger.warning("payments.webhooks no invoice for intent_id=%s event_id=%s", intent.id, event.event_id)
        return None

    if isinstance(event, IntentSucceeded):
        target, url = InvoiceStatus.paid, intent.metadata.get("successUrl") or invoice.success_url
    elif isinstance(event, IntentFailed):
        target, url = InvoiceStatus.failed, intent.metadata.get("cancelUrl") or invoice.cancel_url
    else:
        return None

    changed = repository.set_status_if_pending(invoice.id, target)
    if changed:
        logger.info("payments.webhooks invoice_id=%s %s -> %s intent_id=%s", invoice.id, InvoiceStatus.pending.value, target.value, intent.id)
    else:
        logger.info("payments.webhooks invoice_id=%s already reconciled (status=%s) event=%s", invoice.id, invoice.status.value, event.kind)
    return url or None

def handle_processor_callback(raw_body: bytes, signature_header: Optional[str], secret: Optional[str] = None) -> Optional[str]:
    """
    Vérifie la signature (InvalidSignature, sans lire le payload), puis réconcilie.
    Retour: URL de redirection, ou None si l'événement est ignoré.
    """
    event = stripe_client.construct_event(raw_body, signature_header, secret or config.STRIPE_WEBHOOK_SECRET)
    return reconcile(parse_payment_event(event))
