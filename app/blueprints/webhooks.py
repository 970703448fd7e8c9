"""Webhooks blueprint — /webhook

Receives Stripe webhook events.
Raw body is required for signature verification.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from app.extensions import db
from app.services.stripe_service import (
    MissingCredentials,
    WebhookVerificationError,
    verify_webhook_signature,
)
from app.services.webhook_service import handle_webhook_event

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint("webhooks", __name__)


@webhooks_bp.route("/webhook", methods=["POST"])
def stripe_webhook():
    """Receive and process Stripe webhook events.

    1. Get raw body (required for signature verification)
    2. Verify signature with STRIPE_WEBHOOK_SECRET
    3. Pass to handle_webhook_event (idempotent via unique session id)
    4. Return 200 to acknowledge, 400 for bad requests, 500 to ask for a retry
    """
    payload = request.get_data()
    sig_header = request.headers.get("Stripe-Signature")
    webhook_secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")

    # --- Verify signature ---
    try:
        event = verify_webhook_signature(payload, sig_header, webhook_secret)
    except MissingCredentials as e:
        logger.error(f"{e} (has_signature={bool(sig_header)}, has_secret={bool(webhook_secret)})")
        return jsonify({"error": str(e), "received": False}), 400
    except WebhookVerificationError as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        return jsonify({
            "error": f"Webhook signature verification failed: {e}",
            "received": False,
        }), 400

    # --- Process event ---
    try:
        status_code, body = handle_webhook_event(event)
    except Exception as e:
        db.session.rollback()
        logger.error(
            f"Critical error processing webhook {event.get('type')} "
            f"({event.get('id')}): {e}",
            exc_info=True,
        )
        return jsonify({
            "error": "Internal server error processing webhook",
            "received": True,
            "processed": False,
        }), 500

    return jsonify(body), status_code
