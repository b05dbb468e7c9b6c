import hashlib
import hmac
import json
import time

import pytest
from fastapi.testclient import TestClient

from hacktowin.config import Settings
from hacktowin.main import create_app
from hacktowin.models import Payment

WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        stripe_secret_key="sk_test_123",
        stripe_webhook_secret=WEBHOOK_SECRET,
        jwt_secret="test-jwt-secret",
    )


@pytest.fixture
def client(settings):
    fastapi_app = create_app(settings)
    with TestClient(fastapi_app) as c:
        yield c


@pytest.fixture
def database(client):
    return client.app.state.database


@pytest.fixture
def add_payment(database):
    def _add(intent_id, status="pending", amount=500, currency="inr"):
        with database.session() as db:
            db.add(Payment(id=intent_id, amount=amount, currency=currency, status=status))
            db.commit()

    return _add


@pytest.fixture
def get_payment(database):
    def _get(intent_id):
        with database.session() as db:
            return db.get(Payment, intent_id)

    return _get


@pytest.fixture
def signed_webhook():
    """Build a body and a real Stripe signature header for it."""

    def _build(event_type, intent_id, event_id="evt_test", secret=WEBHOOK_SECRET):
        payload = json.dumps({
            "id": event_id,
            "object": "event",
            "type": event_type,
            "data": {"object": {"id": intent_id, "object": "payment_intent"}},
        }).encode("utf-8")
        timestamp = int(time.time())
        signed = f"{timestamp}.".encode("utf-8") + payload
        signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
        return payload, f"t={timestamp},v1={signature}"

    return _build
