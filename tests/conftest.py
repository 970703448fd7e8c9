"""Shared test fixtures for the webhook receiver test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, fake Stripe keys)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- post_event: POST a correctly signed Stripe event to /webhook
- seed_user: an existing GreatAwakener user without Astrology access
- stripe_api: answer Stripe SDK requests with canned line-item JSON
"""

import hashlib
import hmac
import json
import time
from unittest.mock import MagicMock, patch

import pytest
import stripe

from app import create_app
from app.extensions import db as _db
from app.models.user import User

ASTROLOGY_PRODUCT_ID = "prod_TUrnEqRRgTx9Gz"
ASTROLOGY_PRODUCT_NAME = "Astrology Time Zone"


def sign_payload(payload, secret, timestamp=None):
    """Build a Stripe-Signature header the way Stripe does (v1 scheme)."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed_payload = f"{timestamp}.{payload}"
    signature = hmac.new(
        secret.encode("utf-8"), signed_payload.encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def checkout_completed_event(session_id="cs_test_001", email="buyer@example.com",
                             name="Ada Lovelace", event_id="evt_checkout_001",
                             **session_fields):
    """A checkout.session.completed event with sensible defaults."""
    session = {
        "id": session_id,
        "object": "checkout.session",
        "customer": "cus_test_001",
        "customer_details": {"email": email, "name": name},
        "amount_total": 5000,
        "currency": "usd",
        "payment_status": "paid",
    }
    session.update(session_fields)
    return {
        "id": event_id,
        "type": "checkout.session.completed",
        "data": {"object": session},
    }


def line_item_values(product_ref, item_id="li_test_001"):
    """Raw API JSON for one line item with `data.price.product` expanded.

    product_ref is an expanded product dict, a bare "prod_..." id, or None.
    """
    if isinstance(product_ref, dict):
        product_ref = {"object": "product", **product_ref}
    return {
        "id": item_id,
        "object": "item",
        "price": {"id": "price_test_001", "object": "price", "product": product_ref},
    }


def line_item(product_ref, item_id="li_test_001"):
    """A stripe.LineItem resource, as the SDK hands it back (not a dict)."""
    return stripe.LineItem.construct_from(
        line_item_values(product_ref, item_id), "sk_test_fake"
    )


def line_items_response(*product_refs):
    """Mock the ListObject returned by Session.list_line_items.

    Pages yield real stripe.LineItem resources.
    """
    response = MagicMock()
    response.auto_paging_iter.return_value = iter(
        [line_item(ref, f"li_test_{i:03d}") for i, ref in enumerate(product_refs, 1)]
    )
    return response


def astrology_product():
    return {"id": ASTROLOGY_PRODUCT_ID, "name": ASTROLOGY_PRODUCT_NAME}


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def post_event(client, app):
    """Return a callable that signs and POSTs an event dict (or raw str)."""

    def _post(event, secret=None, timestamp=None):
        payload = event if isinstance(event, str) else json.dumps(event)
        secret = secret or app.config["STRIPE_WEBHOOK_SECRET"]
        return client.post(
            "/webhook",
            data=payload,
            content_type="application/json",
            headers={"Stripe-Signature": sign_payload(payload, secret, timestamp)},
        )

    return _post


@pytest.fixture
def seed_user(app, db_session):
    """An existing member who has not bought Astrology yet."""
    user = User(
        email="grace@example.com",
        first_name="Grace",
        last_name="Hopper",
        user_type="GreatAwakener",
        has_astrology=False,
    )
    _db.session.add(user)
    _db.session.commit()
    return {"user_id": user.id, "email": user.email}


@pytest.fixture
def stripe_api():
    """Stub the Stripe SDK at its HTTP client.

    Returns a callable taking product refs. It installs a one-page line-item
    list as the response body and returns the mock, so the real SDK request
    and response decoding both run.
    """
    with patch("stripe._http_client.HTTPClient.request_with_retries") as mock_request:

        def _respond_with(*product_refs):
            body = {
                "object": "list",
                "url": "/v1/checkout/sessions/cs_test_001/line_items",
                "has_more": False,
                "data": [
                    line_item_values(ref, f"li_test_{i:03d}")
                    for i, ref in enumerate(product_refs, 1)
                ],
            }
            mock_request.return_value = (json.dumps(body), 200, {})
            return mock_request

        yield _respond_with
