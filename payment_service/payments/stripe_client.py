"""
Adaptateur Stripe: centralise les appels et la traduction des erreurs Stripe.
- Multi-tenant: chaque appel passe api_key=<secret du tenant>; stripe.api_key global n'est jamais posé.
- Version d'API figée via STRIPE_API_VERSION.
- Erreurs: stripe.StripeError -> UpstreamRejected ; intent absent -> IntentNotFound ;
  signature/payload webhook invalide -> InvalidSignature.
"""
import hashlib
import json
import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import stripe

from payment_service import config
from .errors import IntentNotFound, InvalidSignature, UpstreamRejected

logger = logging.getLogger(__name__)

# module payment_service.payments.stripe_client
def _options(api_key: str, idempotency_key: Optional[str] = None) -> Dict[str, Any]:
    opts: Dict[str, Any] = {"api_key": api_key, "stripe_version": config.STRIPE_API_VERSION}
    if idempotency_key:
        opts["idempotency_key"] = idempotency_key
    return opts

def _as_dict(obj: Any) -> Dict[str, Any]:
    # StripeObject expose to_dict(); les fakes de tests sont de simples dicts
    if obj is None:
        return {}
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)

@contextmanager
def _stripe_call(operation: str, **ids):
    try:
        yield
    except stripe.StripeError as e:
        logger.exception("payments.stripe_client.%s rejected %s", operation, ids)
        raise UpstreamRejected(f"Stripe a refusé {operation}: {getattr(e, 'user_message', None) or e}") from e

def idempotency_key(operation: str, invoice_id: str, *parts: Any, now: Optional[float] = None) -> str:
    """
    Clé "operation:invoice_id:fenetre:digest".
    - fenetre: tranche de CHECKOUT_IDEMPOTENCY_WINDOW_SECONDS, pour que deux demandes concurrentes
      identiques réutilisent la même session/coupon Stripe.
    - digest: hash des paramètres (Stripe refuse une même clé avec des paramètres différents).
    """
    window_size = max(int(config.CHECKOUT_IDEMPOTENCY_WINDOW_SECONDS), 1)
    window = int((time.time() if now is None else now) // window_size)
    digest = hashlib.sha256(json.dumps(parts, sort_keys=True, default=str).encode("utf-8")).hexdigest()[:16]
    return f"{operation}:{invoice_id}:{window}:{digest}"

def create_intent(api_key: str, *, amount: int, currency: str, metadata: Dict[str, str]) -> str:
    """Crée un PaymentIntent et retourne son id (pi_...)."""
    with _stripe_call("create_intent", invoice_id=metadata.get("invoiceId")):
        intent = stripe.PaymentIntent.create(
            amount=amount,
            currency=currency,
            metadata=metadata,
            **_options(api_key),
        )
    return intent["id"]

def retrieve_intent(api_key: str, intent_id: str) -> Dict[str, str]:
    """
    Relit un PaymentIntent et retourne ses metadata (successUrl, cancelUrl, invoiceId).
    - IntentNotFound si la référence est vide ou inconnue de Stripe.
    """
    if not intent_id:
        raise IntentNotFound("Référence d'intent manquante")
    try:
        with _stripe_call("retrieve_intent", intent_id=intent_id):
            try:
                intent = stripe.PaymentIntent.retrieve(intent_id, **_options(api_key))
            except stripe.InvalidRequestError as e:
                if getattr(e, "code", None) == "resource_missing":
                    raise IntentNotFound(f"Intent introuvable: {intent_id}") from e
                raise
    except IntentNotFound:
        logger.warning("payments.stripe_client.retrieve_intent missing intent_id=%s", intent_id)
        raise
    metadata = _as_dict(_as_dict(intent).get("metadata"))
    return {str(k): str(v) for k, v in metadata.items() if v is not None}

def create_coupon(api_key: str, *, amount_off: int, currency: str, idempotency_key: Optional[str] = None) -> str:
    """Coupon à usage unique (duration=once) d'un montant fixe en unités mineures."""
    with _stripe_call("create_coupon", amount_off=amount_off, currency=currency):
        coupon = stripe.Coupon.create(
            amount_off=amount_off,
            currency=currency,
            duration="once",
            **_options(api_key, idempotency_key),
        )
    return coupon["id"]

def coupon_exists(api_key: str, coupon_id: str) -> bool:
    """
    False si le coupon a été supprimé. Une création rejouée par clé d'idempotence renvoie
    la réponse d'origine, y compris pour un coupon supprimé depuis.
    """
    with _stripe_call("coupon_exists", coupon_id=coupon_id):
        try:
            stripe.Coupon.retrieve(coupon_id, **_options(api_key))
        except stripe.InvalidRequestError as e:
            if getattr(e, "code", None) == "resource_missing":
                return False
            raise
    return True

def delete_coupon(api_key: str, coupon_id: str) -> None:
    """Suppression d'un coupon (compensation après échec de la session)."""
    with _stripe_call("delete_coupon", coupon_id=coupon_id):
        stripe.Coupon.delete(coupon_id, **_options(api_key))

def create_checkout_session(
    api_key: str,
    *,
    line_items: List[Dict[str, Any]],
    success_url: str,
    cancel_url: str,
    metadata: Dict[str, str],
    coupon_id: Optional[str] = None,
    idempotency_key: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Crée une session Stripe Checkout (mode payment).
    Retour: {"id": "cs_...", "url": "https://checkout.stripe.com/..."}
    """
    params: Dict[str, Any] = {
        "line_items": line_items,
        "mode": "payment",
        "success_url": success_url,
        "cancel_url": cancel_url,
        "metadata": metadata,
    }
    if coupon_id:
        params["discounts"] = [{"coupon": coupon_id}]
    with _stripe_call("create_checkout_session", invoice_id=metadata.get("invoiceId")):
        session = stripe.checkout.Session.create(**params, **_options(api_key, idempotency_key))
    return {"id": session["id"], "url": session["url"]}

def construct_event(raw_body: bytes, signature_header: Optional[str], secret: str) -> Dict[str, Any]:
    """
    Vérifie la signature Stripe-Signature puis retourne l'événement (dict JSON).
    - InvalidSignature si l'en-tête, le secret, la signature ou le JSON sont invalides.
    """
    if not signature_header or not secret:
        raise InvalidSignature("Signature ou secret webhook manquant")
    try:
        stripe.Webhook.construct_event(raw_body, signature_header, secret)
    except stripe.SignatureVerificationError as e:
        raise InvalidSignature("Signature webhook invalide") from e
    except ValueError as e:
        raise InvalidSignature("Payload webhook invalide") from e
    # Le corps est authentifié: on garde le JSON brut plutôt que l'objet SDK
    return json.loads(raw_body)
