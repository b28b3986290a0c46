import pytest
from fastapi import FastAPI, Depends
from fastapi.testclient import TestClient

from payment_service.utils.security import require_service


@pytest.fixture
def secured_client():
    app = FastAPI()

    @app.get("/secured")
    def secured(caller=Depends(require_service)):
        return caller

    return TestClient(app)


def test_auth_disabled_when_no_keys(secured_client):
    res = secured_client.get("/secured", headers={"X-Service-Name": "billing"})
    assert res.status_code == 200
    assert res.json() == {"service": "billing"}


def test_valid_service_key(monkeypatch, secured_client):
    monkeypatch.setattr("payment_service.config.SERVICE_API_KEYS", {"billing": "s3cret"})
    res = secured_client.get("/secured", headers={"X-Service-Name": "billing", "Authorization": "Bearer s3cret"})
    assert res.status_code == 200
    assert res.json() == {"service": "billing"}


@pytest.mark.parametrize("headers", [
    {},
    {"X-Service-Name": "billing"},
    {"X-Service-Name": "billing", "Authorization": "Bearer wrong"},
    {"X-Service-Name": "intruder", "Authorization": "Bearer s3cret"},
    {"X-Service-Name": "billing", "Authorization": "Basic s3cret"},
])
def test_rejected_callers(monkeypatch, secured_client, headers):
    monkeypatch.setattr("payment_service.config.SERVICE_API_KEYS", {"billing": "s3cret"})
    assert secured_client.get("/secured", headers=headers).status_code == 401
