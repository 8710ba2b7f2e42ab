"""
POST /onboard/creator/create-intent: pending signup record + Stripe PaymentIntent.
Stripe is mocked; no network calls.
"""
from unittest.mock import MagicMock, patch

import pytest

from auth import verify_password

BODY = {"name": "Creator Anna", "email": "  Anna@Example.COM ", "password": "creator-pass-1"}


@pytest.fixture
def stripe_create():
    intent = MagicMock(id="pi_test_123", client_secret="pi_test_123_secret_abc")
    with patch("services.onboarding_service.stripe.api_key", "sk_test_dummy"), \
            patch("services.onboarding_service.stripe.PaymentIntent.create", return_value=intent) as create:
        yield create


class TestCreateIntent:

    def test_creates_pending_record_and_intent(self, client, fake_db, stripe_create):
        response = client.post("/onboard/creator/create-intent", json=BODY)
        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["clientSecret"] == "pi_test_123_secret_abc"

        record = fake_db.onboarding_sessions.docs[0]
        assert record["onboarding_id"] == body["ref"]
        assert record["email"] == "anna@example.com"
        assert record["role"] == "creator"
        assert record["used_at"] is None
        assert record["password_hash"] != BODY["password"]
        assert verify_password(BODY["password"], record["password_hash"])

        kwargs = stripe_create.call_args.kwargs
        assert kwargs["amount"] == 19900
        assert kwargs["currency"] == "sek"
        assert kwargs["automatic_payment_methods"] == {"enabled": True}
        assert kwargs["metadata"] == {"ref": body["ref"], "email": "anna@example.com", "role": "creator"}

    def test_price_comes_from_env(self, client, fake_db, stripe_create, monkeypatch):
        monkeypatch.setenv("CREATOR_ONBOARDING_PRICE_SEK", "249")
        client.post("/onboard/creator/create-intent", json=BODY)
        assert stripe_create.call_args.kwargs["amount"] == 24900

    @pytest.mark.parametrize("missing", ["name", "email", "password"])
    def test_missing_fields(self, client, fake_db, stripe_create, missing):
        body = {k: v for k, v in BODY.items() if k != missing}
        response = client.post("/onboard/creator/create-intent", json=body)
        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "Missing fields"}
        assert fake_db.onboarding_sessions.docs == []
        stripe_create.assert_not_called()

    def test_stripe_failure_is_500(self, client, fake_db, stripe_create):
        stripe_create.side_effect = RuntimeError("card network down")
        response = client.post("/onboard/creator/create-intent", json=BODY)
        assert response.status_code == 500
        assert response.json() == {"ok": False, "error": "Failed to create payment intent"}

    def test_missing_stripe_key_is_500(self, client, fake_db):
        with patch("services.onboarding_service.stripe.api_key", ""):
            response = client.post("/onboard/creator/create-intent", json=BODY)
        assert response.status_code == 500

    def test_invalid_email_is_400(self, client, fake_db, stripe_create):
        response = client.post("/onboard/creator/create-intent", json={**BODY, "email": "not-an-email"})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid email"
        stripe_create.assert_not_called()
