"""Entitlement service — grants Astrology access after a purchase.

Responsible for:
- Checking a checkout session's line items for the Astrology product
- Setting users.has_astrology for the buyer's email (create if absent)

resolve_entitlement() never raises for lookup, matching or write failures. It returns
an EntitlementResult instead, and the webhook still acknowledges the event.
Both writes are idempotent, so a Stripe retry simply re-applies them.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from app.extensions import db
from app.models.user import User
from app.services.stripe_service import line_item_product, list_session_line_items

logger = logging.getLogger(__name__)

# Result statuses
SKIPPED_NO_EMAIL = "skipped_no_email"
LOOKUP_FAILED = "lookup_failed"
NO_LINE_ITEMS = "no_line_items"
NOT_PURCHASED = "not_purchased"
GRANTED_EXISTING = "granted_existing"
GRANTED_NEW = "granted_new"
FAILED = "failed"

_SOFT_FAILURES = (LOOKUP_FAILED, FAILED)


@dataclass
class EntitlementResult:
    """Outcome of one entitlement attempt.

    A falsy `ok` is a soft failure: already logged, never fatal to the
    webhook.
    """

    status: str
    error: Optional[Exception] = None

    @property
    def ok(self):
        return self.status not in _SOFT_FAILURES

    @property
    def granted(self):
        return self.status in (GRANTED_EXISTING, GRANTED_NEW)


def split_display_name(name):
    """Split a display name into (first_name, last_name).

    First whitespace-separated token is the first name, the rest joined
    with single spaces is the last name. Missing parts become the
    placeholders "Unknown" / "User".
    """
    parts = (name or "").split()
    first_name = parts[0] if parts else "Unknown"
    last_name = " ".join(parts[1:]) or "User"
    return first_name, last_name


def is_astrology_purchase(line_items, product_id, product_name):
    """True if any line item references the Astrology product.

    Matches on product id first. The exact-name match only helps when an
    expanded product carries the expected name under a different id, which
    breaks silently if the product is renamed in Stripe.
    """
    for item in line_items:
        item_product_id, item_product_name = line_item_product(item)
        if item_product_id and item_product_id == product_id:
            return True
        if item_product_name and item_product_name == product_name:
            return True
    return False


def grant_astrology(email, customer_name=None):
    """Set has_astrology for `email`, creating a NonMember user if needed.

    Only has_astrology is touched on an existing user. Returns
    GRANTED_EXISTING or GRANTED_NEW. Raises SQLAlchemyError on DB failure.
    """
    user = User.query.filter_by(email=email).first()
    if user:
        user.has_astrology = True
        db.session.commit()
        logger.info(f"Updated has_astrology to true for user: {email}")
        return GRANTED_EXISTING

    first_name, last_name = split_display_name(customer_name)
    db.session.add(User(
        email=email,
        first_name=first_name,
        last_name=last_name,
        user_type="NonMember",
        has_astrology=True,
    ))
    try:
        db.session.commit()
    except IntegrityError:
        # A concurrent delivery created this email first.
        db.session.rollback()
        User.query.filter_by(email=email).update({"has_astrology": True})
        db.session.commit()
        logger.info(f"Updated has_astrology to true for user: {email} (lost create race)")
        return GRANTED_EXISTING

    logger.info(f"Created new NonMember user with has_astrology=true: {email}")
    return GRANTED_NEW


def resolve_entitlement(session_id, customer_email, customer_name=None):
    """Grant Astrology access if this checkout session bought the product.

    Returns an EntitlementResult. Lookup and write errors are logged with
    the session id and email and reported as a soft failure.
    """
    if not customer_email:
        logger.info(f"No customer email on session {session_id}, skipping entitlement")
        return EntitlementResult(SKIPPED_NO_EMAIL)

    try:
        line_items = list_session_line_items(session_id)
    except Exception as e:
        logger.error(
            f"Failed to fetch line items for session {session_id} "
            f"(email={customer_email}): {e}",
            exc_info=True,
        )
        return EntitlementResult(LOOKUP_FAILED, error=e)

    if not line_items:
        logger.warning(f"No line items found for session {session_id}")
        return EntitlementResult(NO_LINE_ITEMS)

    config = current_app.config
    try:
        purchased = is_astrology_purchase(
            line_items,
            config["ASTROLOGY_PRODUCT_ID"],
            config["ASTROLOGY_PRODUCT_NAME"],
        )
    except Exception as e:
        logger.error(
            f"Failed to read line items for session {session_id} "
            f"(email={customer_email}): {e}",
            exc_info=True,
        )
        return EntitlementResult(FAILED, error=e)

    if not purchased:
        return EntitlementResult(NOT_PURCHASED)

    try:
        status = grant_astrology(customer_email, customer_name)
    except Exception as e:
        db.session.rollback()
        logger.error(
            f"Failed to update/create user for {customer_email} "
            f"(session={session_id}): {e}",
            exc_info=True,
        )
        return EntitlementResult(FAILED, error=e)

    return EntitlementResult(status)
