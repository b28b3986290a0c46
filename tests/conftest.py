import os
from decimal import Decimal
from typing import Generator, Dict, Any, List

import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

# Le lifespan lit ces variables au démarrage de l'app: pas de Redis en tests
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")
os.environ.pop("LOCAL_RATE_LIMIT_FALLBACK", None)

from payment_service.app_setup.factory import create_app
from payment_service.payments.models import Invoice, Product

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)

@pytest.fixture()
def app():
    return create_app()

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

# Aucun test ne doit joindre Supabase ni Stripe
@pytest.fixture(scope="function", autouse=True)
def mock_supabase(monkeypatch):
    fake = MagicMock()
    monkeypatch.setattr("payment_service.infra.supabase_client.get_service_supabase", lambda: fake)
    return fake

@pytest.fixture(autouse=True)
def _service_auth_disabled(monkeypatch):
    monkeypatch.setattr("payment_service.config.SERVICE_API_KEYS", {})

@pytest.fixture
def invoice_factory():
    def _make(**overrides) -> Invoice:
        row: Dict[str, Any] = {
            "id": "inv-1",
            "company_id": "42",
            "currency": "£",
            "amount": "8.00",
            "order_batch_id": "batch-1",
            "payment_intent_id": "pi_123",
            "status": "pending",
            "success_url": "https://shop.test/ok",
            "cancel_url": "https://shop.test/cancel",
            "lines": [],
        }
        row.update(overrides)
        return Invoice.model_validate(row)
    return _make

@pytest.fixture
def products() -> List[Product]:
    return [
        Product(id="p1", name="Menu", description="Menu du jour", price=Decimal("10.00")),
        Product(id="p2", name="Remise fidélité", price=Decimal("-2.00")),
    ]

class FakeStripe:
    """Enregistre les appels de l'adaptateur Stripe (payment_service.payments.stripe_client)."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.intent_metadata: Dict[str, str] = {}
        self.session_error: Exception | None = None
        self.intent_error: Exception | None = None
        self.keys: List[tuple] = []
        # Stripe rejoue la réponse d'origine pour une clé déjà vue, même si le coupon a été supprimé depuis
        self.coupons_by_key: Dict[str, str] = {}
        self.deleted_coupons: set = set()

    def create_intent(self, api_key, *, amount, currency, metadata):
        self.calls.append(("create_intent", api_key, amount, currency, dict(metadata)))
        if self.intent_error:
            raise self.intent_error
        return "pi_new"

    def retrieve_intent(self, api_key, intent_id):
        self.calls.append(("retrieve_intent", api_key, intent_id))
        return dict(self.intent_metadata)

    def create_coupon(self, api_key, *, amount_off, currency, idempotency_key=None):
        self.calls.append(("create_coupon", api_key, amount_off, currency))
        self.keys.append(("create_coupon", idempotency_key))
        if idempotency_key in self.coupons_by_key:
            return self.coupons_by_key[idempotency_key]
        coupon_id = f"co_{len(self.coupons_by_key) + 1}"
        if idempotency_key:
            self.coupons_by_key[idempotency_key] = coupon_id
        return coupon_id

    def coupon_exists(self, api_key, coupon_id):
        self.calls.append(("coupon_exists", api_key, coupon_id))
        return coupon_id not in self.deleted_coupons

    def delete_coupon(self, api_key, coupon_id):
        self.calls.append(("delete_coupon", api_key, coupon_id))
        self.deleted_coupons.add(coupon_id)

    def create_checkout_session(self, api_key, *, line_items, success_url, cancel_url, metadata, coupon_id=None, idempotency_key=None):
        self.calls.append(("create_checkout_session", api_key, line_items, success_url, cancel_url, dict(metadata), coupon_id))
        self.keys.append(("create_checkout_session", idempotency_key))
        if self.session_error:
            raise self.session_error
        return {"id": "cs_1", "url": "https://checkout.stripe.test/cs_1"}

    def names(self) -> List[str]:
        return [c[0] for c in self.calls]

@pytest.fixture
def fake_stripe(monkeypatch) -> FakeStripe:
    fake = FakeStripe()
    for name in ("create_intent", "retrieve_intent", "create_coupon", "coupon_exists", "delete_coupon", "create_checkout_session"):
        monkeypatch.setattr(f"payment_service.payments.stripe_client.{name}", getattr(fake, name))
    return fake
