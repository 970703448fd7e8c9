"""Webhook service — sequences a verified Stripe event into DB writes.

Responsible for:
- Structural validation of the event envelope
- Recording checkout.session.completed sessions
- Triggering the Astrology entitlement step
- Mapping each outcome to an HTTP status code and JSON body

Outcome policy:
    structure errors              -> 400, Stripe should not retry
    uninteresting event types     -> 200, acknowledged and ignored
    session persistence failures  -> 500, Stripe retries
    duplicate session / entitlement soft failures -> 200
"""

import logging

from app.services.checkout_service import (
    RecordOutcome,
    SessionPersistenceError,
    record_checkout_session,
)
from app.services.entitlement_service import resolve_entitlement

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


class EventStructureError(Exception):
    """The verified event is not shaped like a Stripe event we can use."""


class MissingType(EventStructureError):
    pass


class MissingData(EventStructureError):
    pass


class MissingSessionId(EventStructureError):
    pass


def validate_event_structure(event):
    """Check the minimal envelope shape.

    Raises MissingType, MissingData, or (for completed checkouts)
    MissingSessionId.
    """
    if not event or not event.get("type"):
        raise MissingType("Invalid event structure: missing type")

    data = event.get("data")
    if not isinstance(data, dict) or data.get("object") is None:
        raise MissingData("Invalid event structure: missing data object")

    if event["type"] == CHECKOUT_COMPLETED:
        session = data["object"]
        if not isinstance(session, dict) or not session.get("id"):
            raise MissingSessionId("Invalid session structure: missing session id")


def handle_webhook_event(event):
    """Process a signature-verified Stripe event.

    Returns (status_code, body). Exceptions other than the classified
    ones below propagate to the caller, which answers 500.
    """
    try:
        validate_event_structure(event)
    except EventStructureError as e:
        logger.error(f"{e} (event={event.get('id') if event else None})")
        return 400, {"error": str(e), "received": False}

    event_type = event["type"]
    if event_type != CHECKOUT_COMPLETED:
        logger.info(f"Ignoring webhook event type {event_type}")
        return 200, {"received": True}

    return _handle_checkout_completed(event)


def _handle_checkout_completed(event):
    """Record the session, then attempt the entitlement grant."""
    session = event["data"]["object"]
    session_id = session["id"]
    details = session.get("customer_details") or {}
    customer_email = details.get("email")

    logger.info(
        f"Checkout session completed: {session_id} "
        f"(customer={session.get('customer')}, email={customer_email}, "
        f"amount={session.get('amount_total')} {session.get('currency')}, "
        f"status={session.get('payment_status')})"
    )

    try:
        outcome = record_checkout_session(session)
    except SessionPersistenceError as e:
        logger.error(f"Failed to record checkout session {session_id}: {e}", exc_info=True)
        return 500, {
            "error": "Internal server error processing webhook",
            "received": True,
            "processed": False,
            "sessionId": session_id,
        }

    # Soft failures are logged inside resolve_entitlement and never change
    # the response.
    entitlement = resolve_entitlement(
        session_id, customer_email, details.get("name")
    )

    return 200, {
        "received": True,
        "processed": True,
        "sessionId": session_id,
        "duplicate": outcome is RecordOutcome.ALREADY_EXISTS,
        "entitlement": entitlement.status,
    }
