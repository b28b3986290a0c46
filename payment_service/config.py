# payment_service.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du service de paiement.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe)
- Expose les noms de tables des stores (factures, credentials, commandes, produits)
- Politique devises: table symbole -> code, code par défaut, politique pour symbole inconnu
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _parse_pairs(raw: str) -> dict:
    """
    Parse "a:b,c:d" en {"a": "b", "c": "d"}.
    - Ignore les entrées vides ou sans ':'.
    """
    pairs = {}
    for chunk in (raw or "").split(","):
        if ":" not in chunk:
            continue
        key, value = chunk.split(":", 1)
        key, value = key.strip(), value.strip()
        if key and value:
            pairs[key] = value
    return pairs

# Supabase: URL et clé service-role (opérations serveur, pas de RLS utilisateur ici)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Tables des stores externes
INVOICES_TABLE = os.getenv("INVOICES_TABLE", "invoices")
CREDENTIALS_TABLE = os.getenv("CREDENTIALS_TABLE", "credentials")
ORDERS_TABLE = os.getenv("ORDERS_TABLE", "order")
PRODUCTS_TABLE = os.getenv("PRODUCTS_TABLE", "product")

# Stripe: version d'API figée et secret webhook (les clés secrètes sont par tenant, en base)
STRIPE_API_VERSION = _clean_env(os.getenv("STRIPE_API_VERSION") or "2022-11-15")
STRIPE_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_WEBHOOK_SECRET") or "")
CREDENTIAL_KIND = os.getenv("CREDENTIAL_KIND", "stripe")

# Devises: symbole d'affichage -> code processeur
CURRENCY_SYMBOLS = _parse_pairs(os.getenv("CURRENCY_SYMBOLS", "£:gbp,$:usd,€:eur"))
DEFAULT_CURRENCY_CODE = _clean_env(os.getenv("DEFAULT_CURRENCY_CODE") or "gbp").lower()
# "default": symbole inconnu -> DEFAULT_CURRENCY_CODE ; "fail": erreur UnknownCurrency
UNKNOWN_CURRENCY_POLICY = os.getenv("UNKNOWN_CURRENCY_POLICY", "default").strip().lower()

# Fenêtre des clés d'idempotence Stripe (session/coupon) pour une même facture
CHECKOUT_IDEMPOTENCY_WINDOW_SECONDS = int(os.getenv("CHECKOUT_IDEMPOTENCY_WINDOW_SECONDS", "600"))

# Authentification inter-services: "nom:clé,nom2:clé2" (vide = désactivée, dev local)
SERVICE_API_KEYS = _parse_pairs(_clean_env(os.getenv("SERVICE_API_KEYS") or ""))

# CORS / hosts
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()]
