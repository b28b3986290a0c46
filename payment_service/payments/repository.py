"""
Accès aux données pour la feature 'payments' (Supabase / PostgREST).
- Factures: lecture, pose de la référence d'intent, transition conditionnelle de statut.
- Credentials: secret Stripe par tenant.
- Commandes/produits: produits d'un lot de commande.
Absence -> None / []. Erreur de store -> PersistenceFailure (jamais avalée ici).
"""
from typing import Iterable, List, Optional
import logging

from pydantic import ValidationError

import payment_service.infra.supabase_client as supabase_client
from payment_service import config
from .errors import InvoiceNotFound, PersistenceFailure
from .models import Invoice, InvoiceStatus, Product

logger = logging.getLogger(__name__)

INVOICE_COLUMNS = (
    "id, company_id, currency, amount, order_batch_id, payment_intent_id, "
    "status, success_url, cancel_url, lines"
)

# module payment_service.payments.repository
def _first(rows) -> Optional[dict]:
    return rows[0] if isinstance(rows, list) and rows else None

def _to_invoice(row: Optional[dict]) -> Optional[Invoice]:
    if not row:
        return None
    try:
        return Invoice.model_validate(row)
    except ValidationError as e:
        raise PersistenceFailure(f"Ligne facture invalide id={row.get('id')}: {e}") from e

def get_invoice(invoice_id: str) -> Optional[Invoice]:
    """Récupère une facture par id (None si absente)."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(config.INVOICES_TABLE)
            .select(INVOICE_COLUMNS)
            .eq("id", invoice_id)
            .limit(1)
            .execute()
        )
    except Exception as e:
        logger.exception("payments.repository.get_invoice failed invoice_id=%s", invoice_id)
        raise PersistenceFailure("Lecture facture impossible") from e
    return _to_invoice(_first(res.data))

def find_by_intent_reference(intent_id: str) -> Optional[Invoice]:
    """Facture dont payment_intent_id == intent_id (None si aucune)."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(config.INVOICES_TABLE)
            .select(INVOICE_COLUMNS)
            .eq("payment_intent_id", intent_id)
            .limit(1)
            .execute()
        )
    except Exception as e:
        logger.exception("payments.repository.find_by_intent_reference failed intent_id=%s", intent_id)
        raise PersistenceFailure("Lecture facture par intent impossible") from e
    return _to_invoice(_first(res.data))

def set_intent_reference(
    invoice_id: str,
    intent_id: str,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
) -> None:
    """
    Pose payment_intent_id sur la facture et y recopie les URLs de redirection
    (elles restent aussi dans les metadata Stripe de l'intent).
    - InvoiceNotFound si aucune ligne mise à jour.
    """
    values = {"payment_intent_id": intent_id}
    if success_url:
        values["success_url"] = success_url
    if cancel_url:
        values["cancel_url"] = cancel_url
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(config.INVOICES_TABLE)
            .update(values)
            .eq("id", invoice_id)
            .execute()
        )
    except Exception as e:
        logger.exception("payments.repository.set_intent_reference failed invoice_id=%s intent_id=%s", invoice_id, intent_id)
        raise PersistenceFailure("Écriture de la référence d'intent impossible") from e
    if not res.data:
        raise InvoiceNotFound(f"Facture introuvable: {invoice_id}")

def set_status_if_pending(invoice_id: str, status: InvoiceStatus) -> int:
    """
    UPDATE ... SET status = :status WHERE id = :id AND status = 'pending'.
    Retourne le nombre de lignes modifiées: 0 = déjà réconciliée (pas une erreur).
    Deux livraisons concurrentes du même événement ne peuvent donc pas inverser un statut terminal.
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(config.INVOICES_TABLE)
            .update({"status": InvoiceStatus(status).value})
            .eq("id", invoice_id)
            .eq("status", InvoiceStatus.pending.value)
            .execute()
        )
    except Exception as e:
        logger.exception("payments.repository.set_status_if_pending failed invoice_id=%s status=%s", invoice_id, status)
        raise PersistenceFailure("Mise à jour du statut impossible") from e
    return len(res.data or [])

def get_credential(tenant_id: str, kind: str) -> Optional[str]:
    """Secret du tenant pour le type de credential donné (None si absent)."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(config.CREDENTIALS_TABLE)
            .select("password")
            .eq("name", str(tenant_id))
            .eq("type", kind)
            .limit(1)
            .execute()
        )
    except Exception as e:
        logger.exception("payments.repository.get_credential failed tenant_id=%s kind=%s", tenant_id, kind)
        raise PersistenceFailure("Lecture credential impossible") from e
    row = _first(res.data)
    return (row or {}).get("password") or None

def list_product_ids_for_batch(batch_id: str) -> List[str]:
    """Ids produits distincts référencés par le lot (ordre de première apparition)."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(config.ORDERS_TABLE)
            .select("product_id")
            .eq("batch_id", batch_id)
            .execute()
        )
    except Exception as e:
        logger.exception("payments.repository.list_product_ids_for_batch failed batch_id=%s", batch_id)
        raise PersistenceFailure("Lecture des commandes impossible") from e
    ids: List[str] = []
    for row in res.data or []:
        pid = row.get("product_id")
        if pid is not None and str(pid) not in ids:
            ids.append(str(pid))
    return ids

def list_products(ids: Iterable[str]) -> List[Product]:
    """Produits par ids, dans l'ordre des ids demandés ([] si ids vide)."""
    wanted = [str(i) for i in ids]
    if not wanted:
        return []
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(config.PRODUCTS_TABLE)
            .select("id, name, description, price")
            .in_("id", wanted)
            .execute()
        )
    except Exception as e:
        logger.exception("payments.repository.list_products failed ids=%s", wanted)
        raise PersistenceFailure("Lecture des produits impossible") from e
    try:
        by_id = {}
        for row in res.data or []:
            product = Product.model_validate(row)
            by_id.setdefault(product.id, product)
    except ValidationError as e:
        raise PersistenceFailure(f"Ligne produit invalide: {e}") from e
    return [by_id[i] for i in wanted if i in by_id]
