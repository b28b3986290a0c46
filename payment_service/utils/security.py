import secrets
from typing import Dict, Optional

from fastapi import HTTPException, Request

from payment_service import config

SERVICE_NAME_HEADER = "X-Service-Name"

def _bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None

def require_service(request: Request) -> Dict[str, Optional[str]]:
    """
    Authentifie le service appelant (X-Service-Name + Authorization: Bearer <clé>).
    - SERVICE_API_KEYS vide: authentification désactivée (dev local), le nom est simplement relayé.
    - Service inconnu ou clé invalide: 401.
    """
    name = request.headers.get(SERVICE_NAME_HEADER)
    keys = config.SERVICE_API_KEYS
    if not keys:
        return {"service": name}

    token = _bearer_token(request)
    if not name or not token:
        raise HTTPException(status_code=401, detail="Service non authentifié")
    expected = keys.get(name)
    if not expected or not secrets.compare_digest(token, expected):
        raise HTTPException(status_code=401, detail="Service non authentifié")
    return {"service": name}
