"""Checkout service — persists completed checkout sessions.

A Stripe redelivery of the same session hits the unique constraint on
checkout_sessions.stripe_session_id. That is reported as ALREADY_EXISTS,
not as a failure, so the caller can still run the entitlement step.
"""

import enum
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.extensions import db
from app.models.checkout_session import CheckoutSession

logger = logging.getLogger(__name__)


class RecordOutcome(enum.Enum):
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"


class SessionPersistenceError(Exception):
    """The session row could not be written. Stripe should retry."""


def _customer_id(session):
    customer = session.get("customer")
    if isinstance(customer, dict):
        return customer.get("id")
    return customer or None


def build_checkout_session(session):
    """Map a Stripe checkout session payload to a CheckoutSession row.

    Missing fields fall back to fixed defaults rather than being omitted.
    """
    details = session.get("customer_details") or {}
    return CheckoutSession(
        stripe_session_id=session["id"],
        customer_id=_customer_id(session),
        customer_email=details.get("email") or None,
        amount_total=session.get("amount_total") or 0,
        currency=session.get("currency") or "usd",
        payment_status=session.get("payment_status") or "unknown",
    )


def record_checkout_session(session):
    """Insert the session row, treating a duplicate id as already recorded.

    Returns RecordOutcome.CREATED or RecordOutcome.ALREADY_EXISTS.
    Raises SessionPersistenceError on any other database failure.
    """
    stripe_session_id = session["id"]
    record = build_checkout_session(session)

    try:
        db.session.add(record)
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        if _session_exists(stripe_session_id):
            logger.warning(
                f"Checkout session {stripe_session_id} already exists "
                f"- may be a duplicate webhook"
            )
            return RecordOutcome.ALREADY_EXISTS
        raise SessionPersistenceError(
            f"Integrity error saving checkout session {stripe_session_id}: {e.orig}"
        ) from e
    except SQLAlchemyError as e:
        db.session.rollback()
        raise SessionPersistenceError(
            f"Failed to save checkout session {stripe_session_id}: {e}"
        ) from e

    logger.info(f"Checkout session saved to database: {stripe_session_id}")
    return RecordOutcome.CREATED


def _session_exists(stripe_session_id):
    """Confirm the unique key is really taken before calling it a duplicate."""
    try:
        return CheckoutSession.query.filter_by(
            stripe_session_id=stripe_session_id
        ).first() is not None
    except SQLAlchemyError as e:
        db.session.rollback()
        raise SessionPersistenceError(
            f"Failed to check for existing checkout session {stripe_session_id}: {e}"
        ) from e
