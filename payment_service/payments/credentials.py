"""
Résolution du secret Stripe d'un tenant.
Pas de cache: chaque appel relit le store (une rotation de clé est visible immédiatement).
"""
import logging

from payment_service import config
from . import repository
from .errors import CredentialNotFound

logger = logging.getLogger(__name__)

# module payment_service.payments.credentials
def resolve_secret(tenant_id: str) -> str:
    """
    Retourne le secret Stripe du tenant.
    - CredentialNotFound si aucune ligne (tenant, CREDENTIAL_KIND).
    - PersistenceFailure propagée si le store est injoignable.
    """
    secret = repository.get_credential(str(tenant_id), config.CREDENTIAL_KIND)
    if not secret:
        logger.warning("payments.credentials: no %s credential for tenant_id=%s", config.CREDENTIAL_KIND, tenant_id)
        raise CredentialNotFound(f"Credentials {config.CREDENTIAL_KIND} introuvables pour le tenant {tenant_id}")
    return secret
