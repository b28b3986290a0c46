import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from payment_service.utils.security import require_service
from payment_service.utils.rate_limit import optional_rate_limit

from payment_service.payments import service as payments_service
from payment_service.payments import webhooks as payments_webhooks
from payment_service.payments.errors import EmptyCheckout, InvalidSignature, NotFound, UnknownCurrency
from payment_service.payments.models import PaymentIntentRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Payments API"])

# module payment_service.payments.views
@router.post(
    "/payments",
    status_code=201,
    dependencies=[Depends(optional_rate_limit(times=100, seconds=15 * 60))],
)
def create_payment(payload: PaymentIntentRequest, caller: Dict[str, Any] = Depends(require_service)):
    """
    Crée le PaymentIntent d'une facture pour le service appelant.
    - Entrée JSON: { invoiceId, amount (unités mineures), currency, successUrl, cancelUrl, companyId }
    - Sécurité: require_service + rate limit (100 req / 15 min)
    - Réponses: 201 {"success": true} ; 500 {"success": false, "error": ...} (cause journalisée)
    """
    accepted = payments_service.initiate_payment(
        invoice_id=payload.invoice_id,
        amount=payload.amount,
        currency=payload.currency,
        success_url=payload.success_url,
        cancel_url=payload.cancel_url,
        tenant_id=payload.tenant_id,
    )
    if accepted:
        return {"success": True}
    logger.warning("payments.create_payment rejected invoice_id=%s service=%s", payload.invoice_id, caller.get("service"))
    return JSONResponse(status_code=500, content={"success": False, "error": "Failed to create payment intent"})

@router.get("/pay/{invoice_id}", dependencies=[Depends(optional_rate_limit(times=300, seconds=60 * 60))])
def payment_page(request: Request, invoice_id: str, referrer: Optional[str] = None):
    """
    Page de paiement: construit la session Checkout et redirige (302) vers Stripe.
    - referrer: paramètre de requête, sinon en-tête Referer (URL d'annulation effective)
    - Erreurs: 404 facture/intent/credential absent ; 422 panier vide ou devise refusée ; 500 sinon
    """
    referrer_url = referrer or request.headers.get("referer") or None
    try:
        url = payments_service.build_checkout(invoice_id, referrer_url=referrer_url)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=e.code)
    except (EmptyCheckout, UnknownCurrency) as e:
        raise HTTPException(status_code=422, detail=e.code)
    except Exception:
        logger.exception("Erreur payment_page invoice_id=%s", invoice_id)
        raise HTTPException(status_code=500, detail="could not create checkout")
    return RedirectResponse(url=url, status_code=302)

@router.post("/webhook/stripe", include_in_schema=False)
async def webhook_stripe(request: Request):
    """
    Webhook Stripe (PaymentIntent): réconcilie le statut de la facture.
    - Signature: Stripe-Signature + STRIPE_WEBHOOK_SECRET, vérifiée avant toute lecture du payload
    - Réponses: {"status": "ok", "redirect_url": ...} ou {"status": "ignored"}
    - Erreurs: 400 si signature invalide ; les erreurs de store remontent en 500 (Stripe relivrera)
    """
    raw_body = await request.body()
    try:
        redirect_url = await run_in_threadpool(
            payments_webhooks.handle_processor_callback, raw_body, request.headers.get("stripe-signature")
        )
    except InvalidSignature:
        logger.warning("payments.webhook invalid signature")
        raise HTTPException(status_code=400, detail="Webhook signature verification failed")
    if redirect_url is None:
        return {"status": "ignored"}
    return {"status": "ok", "redirect_url": redirect_url}
