import os


def _engine_options(db_url):
    """Engine options for the runtime database.

    PostgreSQL connections get a bounded pool checkout and a server-side
    statement timeout so a stalled store fails the request instead of
    hanging it. Expiry surfaces as an OperationalError.
    """
    options = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }
    if db_url.startswith("postgresql"):
        statement_timeout = int(os.environ.get("DB_STATEMENT_TIMEOUT_MS", 5000))
        options["pool_timeout"] = int(os.environ.get("DB_POOL_TIMEOUT", 10))
        options["connect_args"] = {
            "connect_timeout": 10,
            "options": f"-c statement_timeout={statement_timeout}",
        }
    return options


class Config:
    """Base configuration. Shared across all environments."""

    # Handle DATABASE_URL: some PaaS providers (Railway, Heroku) use
    # "postgres://" which SQLAlchemy 1.4+ doesn't accept.
    _db_url = os.environ.get("DATABASE_URL", "")
    if _db_url.startswith("postgres://"):
        _db_url = _db_url.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = _db_url or None

    # --- Stripe ---
    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")      # outbound API calls (line items)
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET")  # inbound signature checks

    # --- Entitlement ---
    # The product id is authoritative; the name is only a fallback for
    # line items whose product reference carries a name but a different id.
    ASTROLOGY_PRODUCT_ID = os.environ.get(
        "ASTROLOGY_PRODUCT_ID", "prod_TUrnEqRRgTx9Gz"
    )
    ASTROLOGY_PRODUCT_NAME = os.environ.get(
        "ASTROLOGY_PRODUCT_NAME", "Astrology Time Zone"
    )

    # --- Server ---
    PORT = int(os.environ.get("PORT", 8000))
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # --- SQLAlchemy ---
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options(_db_url)

    @staticmethod
    def validate():
        """Fail fast if required env vars are missing."""
        required = [
            "DATABASE_URL",
            "STRIPE_SECRET_KEY",
            "STRIPE_WEBHOOK_SECRET",
        ]
        missing = [v for v in required if not os.environ.get(v)]
        if missing:
            raise RuntimeError(
                f"Missing required environment variables: {', '.join(missing)}"
            )


class DevConfig(Config):
    """Local development."""

    DEBUG = True


class TestConfig(Config):
    """Testing — in-memory SQLite, fake Stripe credentials."""

    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    STRIPE_SECRET_KEY = "sk_test_fake"
    STRIPE_WEBHOOK_SECRET = "whsec_test_fake"
    ASTROLOGY_PRODUCT_ID = "prod_TUrnEqRRgTx9Gz"
    ASTROLOGY_PRODUCT_NAME = "Astrology Time Zone"

    @staticmethod
    def validate():
        """Skip validation in test mode — everything is hardcoded."""
        pass


class ProdConfig(Config):
    """Production."""

    DEBUG = False


config_by_name = {
    "development": DevConfig,
    "production": ProdConfig,
    "testing": TestConfig,
}
