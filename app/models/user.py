"""User model.

Email uniquely identifies a user. The webhook flow only ever creates a
NonMember row or flips has_astrology on an existing one.
"""

import uuid

from app.extensions import db


class User(db.Model):
    __tablename__ = "users"

    # -- Valid membership tiers --
    USER_TYPES = [
        "Free",
        "GreatAwakener",
        "VirtualOracle",
        "NonMember",
    ]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    first_name = db.Column(db.String(255), nullable=False)
    last_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    user_type = db.Column(
        db.Enum(*USER_TYPES, name="user_type"), nullable=False, default="Free"
    )
    has_astrology = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self):
        return f"<User {self.email} ({self.user_type})>"
