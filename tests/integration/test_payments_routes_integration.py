from payment_service.payments.errors import (
    CredentialNotFound,
    EmptyCheckout,
    InvoiceNotFound,
    UnknownCurrency,
    UpstreamRejected,
)

PAYLOAD = {
    "invoiceId": "inv-1",
    "amount": 1999,
    "currency": "£",
    "successUrl": "https://shop.test/ok",
    "cancelUrl": "https://shop.test/cancel",
    "companyId": 42,
}

def test_create_payment_accepted(client, monkeypatch):
    seen = {}
    def _initiate(**kwargs):
        seen.update(kwargs)
        return True
    monkeypatch.setattr("payment_service.payments.service.initiate_payment", _initiate)

    res = client.post("/api/payments", json=PAYLOAD)
    assert res.status_code == 201
    assert res.json() == {"success": True}
    assert seen["invoice_id"] == "inv-1"
    assert seen["tenant_id"] == "42"
    assert seen["amount"] == 1999

def test_create_payment_rejected(client, monkeypatch):
    monkeypatch.setattr("payment_service.payments.service.initiate_payment", lambda **kwargs: False)
    res = client.post("/api/payments", json=PAYLOAD)
    assert res.status_code == 500
    assert res.json()["success"] is False

def test_create_payment_invalid_body(client):
    res = client.post("/api/payments", json={"invoiceId": "inv-1", "amount": -5})
    assert res.status_code == 422

def test_create_payment_requires_service_key(client, monkeypatch):
    monkeypatch.setattr("payment_service.config.SERVICE_API_KEYS", {"ordering": "k3y"})
    monkeypatch.setattr("payment_service.payments.service.initiate_payment", lambda **kwargs: True)

    assert client.post("/api/payments", json=PAYLOAD).status_code == 401
    res = client.post("/api/payments", json=PAYLOAD, headers={"X-Service-Name": "ordering", "Authorization": "Bearer k3y"})
    assert res.status_code == 201

def test_payment_page_redirects(client, monkeypatch):
    seen = {}
    def _build(invoice_id, referrer_url=None):
        seen.update(invoice_id=invoice_id, referrer_url=referrer_url)
        return "https://checkout.stripe.test/cs_1"
    monkeypatch.setattr("payment_service.payments.service.build_checkout", _build)

    res = client.get("/api/pay/inv-1", headers={"Referer": "https://shop.test/basket"}, follow_redirects=False)
    assert res.status_code == 302
    assert res.headers["location"] == "https://checkout.stripe.test/cs_1"
    assert seen == {"invoice_id": "inv-1", "referrer_url": "https://shop.test/basket"}

def test_payment_page_referrer_query_wins(client, monkeypatch):
    seen = {}
    def _build(invoice_id, referrer_url=None):
        seen["referrer_url"] = referrer_url
        return "https://checkout.stripe.test/cs_1"
    monkeypatch.setattr("payment_service.payments.service.build_checkout", _build)

    client.get("/api/pay/inv-1?referrer=https://shop.test/back", headers={"Referer": "https://other.test"}, follow_redirects=False)
    assert seen["referrer_url"] == "https://shop.test/back"

def _raising(exc):
    def _build(invoice_id, referrer_url=None):
        raise exc
    return _build

def test_payment_page_error_mapping(client, monkeypatch):
    cases = [
        (InvoiceNotFound("x"), 404),
        (CredentialNotFound("x"), 404),
        (EmptyCheckout("x"), 422),
        (UnknownCurrency("x"), 422),
        (UpstreamRejected("x"), 500),
        (RuntimeError("x"), 500),
    ]
    for exc, status in cases:
        monkeypatch.setattr("payment_service.payments.service.build_checkout", _raising(exc))
        res = client.get("/api/pay/inv-1", follow_redirects=False)
        assert res.status_code == status, exc
    assert res.json() == {"detail": "could not create checkout"}
