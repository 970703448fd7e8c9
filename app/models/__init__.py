# Models package — import all models here so Alembic can discover them.

from app.models.user import User  # noqa: F401
from app.models.checkout_session import CheckoutSession  # noqa: F401
from app.models.product import Product  # noqa: F401
