"""Stripe service — signature verification and line-item lookups.

Responsible for:
- Verifying the Stripe-Signature header against the raw request body
- Decoding the verified body into an event dict
- Listing a checkout session's line items with products expanded

Nothing here touches the database.
"""

import json
import logging

import stripe
from flask import current_app

logger = logging.getLogger(__name__)


class WebhookVerificationError(Exception):
    """The request could not be proven to come from Stripe."""


class MissingCredentials(WebhookVerificationError):
    """Signature header or signing secret is absent."""


class InvalidSignature(WebhookVerificationError):
    """Signature does not match the body, secret, or tolerance window."""


class InvalidPayload(WebhookVerificationError):
    """Signature matched but the body is not a JSON object."""


# ──────────────────────────────────────────────
# Webhook Verification
# ──────────────────────────────────────────────

def verify_webhook_signature(payload, sig_header, webhook_secret):
    """Verify a Stripe webhook signature and decode the event.

    `payload` must be the raw request bytes exactly as received. The body
    is only parsed as JSON after the signature check passes.

    Returns the event as a plain dict.
    Raises MissingCredentials, InvalidSignature or InvalidPayload.
    """
    if not sig_header or not webhook_secret:
        raise MissingCredentials(
            "Missing stripe-signature header or webhook secret"
        )

    try:
        body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
    except UnicodeDecodeError as e:
        raise InvalidSignature(f"Body is not valid UTF-8: {e}") from e

    try:
        stripe.WebhookSignature.verify_header(
            body, sig_header, webhook_secret, stripe.Webhook.DEFAULT_TOLERANCE
        )
    except stripe.SignatureVerificationError as e:
        raise InvalidSignature(str(e)) from e

    try:
        event = json.loads(body)
    except ValueError as e:
        raise InvalidPayload(f"Invalid JSON payload: {e}") from e

    if not isinstance(event, dict):
        raise InvalidPayload("Event payload must be a JSON object")

    return event


# ──────────────────────────────────────────────
# Line Items
# ──────────────────────────────────────────────

def list_session_line_items(session_id):
    """Return every line item of a checkout session, products expanded.

    Follows pagination so sessions with many items are listed in full.
    Raises stripe.StripeError on API failures.
    """
    line_items = stripe.checkout.Session.list_line_items(
        session_id,
        expand=["data.price.product"],
        limit=100,
        api_key=current_app.config["STRIPE_SECRET_KEY"],
    )
    if not line_items:
        return []
    return list(line_items.auto_paging_iter())


def _field(obj, name):
    """Read `name` from a Stripe resource or a plain dict.

    SDK resources (LineItem, Price, Product) are not dicts in current
    stripe releases, so `.get` is not available on them.
    """
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def line_item_product(item):
    """Extract (product_id, product_name) from a line item.

    The product may be an expanded object or a bare "prod_..." id when
    the expansion was not applied. Name is None for bare ids.
    """
    product = _field(_field(item, "price"), "product")
    if isinstance(product, str):
        return product, None
    if product:
        return _field(product, "id"), _field(product, "name")
    return None, None
