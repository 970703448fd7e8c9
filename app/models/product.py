"""Product catalog model.

Mirrors the Stripe products we sell. Seeded by `flask seed`; the webhook
flow never reads or writes it.
"""

import uuid

from app.extensions import db


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name = db.Column(db.String(255), nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    stripe_id = db.Column(db.String(255), unique=True, nullable=True)  # e.g. "prod_..."
    stripe_active = db.Column(db.Boolean, default=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self):
        return f"<Product {self.name} ({self.stripe_id})>"
