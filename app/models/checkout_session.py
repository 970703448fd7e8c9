"""Checkout session model.

One row per completed Stripe Checkout Session. The unique constraint on
stripe_session_id is what makes redelivered webhooks harmless: the second
insert fails and is treated as a duplicate, never as an update.
"""

import uuid

from app.extensions import db


class CheckoutSession(db.Model):
    __tablename__ = "checkout_sessions"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    stripe_session_id = db.Column(
        db.String(255), unique=True, nullable=False
    )  # e.g. "cs_test_a1B2..."
    customer_id = db.Column(db.String(255), nullable=True)  # e.g. "cus_..."
    customer_email = db.Column(db.String(255), nullable=True)
    amount_total = db.Column(db.Integer, nullable=False, default=0)  # minor units
    currency = db.Column(db.String(10), nullable=False, default="usd")
    payment_status = db.Column(
        db.String(50), nullable=False, default="unknown"
    )  # paid | unpaid | no_payment_required | unknown
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self):
        return f"<CheckoutSession {self.stripe_session_id} ({self.payment_status})>"
