import os
import logging
from decimal import Decimal

import click
from flask import Flask, jsonify

from app.config import config_by_name
from app.extensions import db, migrate


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            if config_name == "production":
                raise
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from app import models  # noqa: F401

    # --- Register blueprints ---
    from app.blueprints.webhooks import webhooks_bp

    app.register_blueprint(webhooks_bp)

    # --- Health check ---
    @app.route("/ping")
    @app.route("/status")
    def ping():
        """Liveness check. No side effects."""
        return jsonify({"status": "ok"})

    # --- Error handlers ---
    # JSON only; tracebacks stay in the server log.
    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def server_error(e):
        return jsonify({"error": "Internal server error"}), 500

    # --- CLI commands ---
    register_cli(app)

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=app.config["LOG_LEVEL"])

    return app


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("seed")
    def seed():
        """Upsert the Astrology product and demo users for every user type.

        Usage:
            flask seed
        """
        from app.models.product import Product
        from app.models.user import User

        click.echo("Seeding products...")

        product_id = app.config["ASTROLOGY_PRODUCT_ID"]
        product = Product.query.filter_by(stripe_id=product_id).first()
        if not product:
            product = Product(stripe_id=product_id)
            db.session.add(product)
        product.name = app.config["ASTROLOGY_PRODUCT_NAME"]
        product.price = Decimal("50.00")
        product.stripe_active = True
        db.session.flush()
        click.echo(f"Product seeded: {product.name} ({product.stripe_id})")

        click.echo("Seeding users...")

        # 4 users per type, alternating has_astrology
        first_names = ["Alice", "Bob", "Charlie", "Diana"]
        last_names = ["Smith", "Johnson", "Williams", "Brown"]

        for user_type in User.USER_TYPES:
            for i in range(4):
                email = f"{user_type.lower()}.user{i + 1}@example.com"
                user = User.query.filter_by(email=email).first()
                if not user:
                    user = User(email=email)
                    db.session.add(user)
                user.first_name = first_names[i]
                user.last_name = last_names[i]
                user.user_type = user_type
                user.has_astrology = i % 2 == 0
                click.echo(f"User seeded ({user_type}): {email}")

        db.session.commit()
        click.echo("All users seeded successfully!")

    @app.cli.command("simulate-webhook-failures")
    @click.option(
        "--url",
        default=lambda: os.environ.get("WEBHOOK_URL", "http://localhost:8000/webhook"),
        help="Webhook endpoint of a running receiver.",
    )
    def simulate_webhook_failures(url):
        """POST malformed and unsigned events to a running receiver.

        Every scenario should come back 400. Useful after a deploy to
        confirm the error paths without touching real Stripe data.

        Usage:
            flask simulate-webhook-failures
            flask simulate-webhook-failures --url https://example.com/webhook
        """
        import requests

        scenarios = [
            (
                "Missing Stripe Signature",
                {"type": "checkout.session.completed", "data": {"object": {}}},
                {},
            ),
            (
                "Invalid Stripe Signature",
                {"type": "checkout.session.completed", "data": {"object": {}}},
                {"Stripe-Signature": "invalid_signature_here"},
            ),
            (
                "Malformed Event - Missing Type",
                {"data": {"object": {}}},
                {"Stripe-Signature": "test_signature"},
            ),
            (
                "Malformed Event - Missing Data",
                {"type": "checkout.session.completed"},
                {"Stripe-Signature": "test_signature"},
            ),
            (
                "Invalid Session - Missing ID",
                {
                    "type": "checkout.session.completed",
                    "data": {"object": {"customer": "cus_test", "amount_total": 5000}},
                },
                {"Stripe-Signature": "test_signature"},
            ),
        ]

        click.echo(f"Webhook failure scenarios against {url}")
        click.echo("=" * 60)
        for name, payload, headers in scenarios:
            click.echo(f"\n  Testing: {name}")
            try:
                resp = requests.post(url, json=payload, headers=headers, timeout=10)
                click.echo(f"    {resp.status_code} {resp.text.strip()}")
            except requests.RequestException as e:
                click.echo(f"    ERROR: {e}")
        click.echo("")
        click.echo("To test a missing webhook secret, unset STRIPE_WEBHOOK_SECRET on the server.")
