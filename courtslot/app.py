import logging

from flask import Flask, jsonify, request
from flask_migrate import Migrate
from sqlalchemy import inspect

from courtslot.config import Config
from courtslot.routes import health_bp, courts_bp, cart_bp, bookings_bp, waitlist_bp, admin_bp

from courtslot.models import db
from courtslot.services.errors import ReservationError
from courtslot.utils.seed import seed_roles
from courtslot.utils.auth_context import load_current_user

logger = logging.getLogger(__name__)


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(courts_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(bookings_bp)
    app.register_blueprint(waitlist_bp)
    app.register_blueprint(admin_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Seed default roles at startup (safe & idempotent)
    with app.app_context():
        if app.config.get("CREATE_TABLES_ON_STARTUP"):
            db.create_all()
        if inspect(db.engine).has_table("roles"):
            seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.errorhandler(ReservationError)
    def _reservation_error(err):
        if err.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.path, err.message)
        else:
            logger.info("%s %s refused (%s): %s", request.method, request.path, err.status_code, err.message)
        return jsonify(err.to_dict()), err.status_code

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------
import click
from courtslot.models.user import User, Role
from courtslot.services import cart as cart_service, effects, waitlist as waitlist_service

def _report(report):
    effects.run(report)
    click.echo(f"{report.name}: {len(report.expired_ids)} expired, {len(report.promoted)} promoted")
    for warning in report.warnings:
        click.echo(f"  warning: {warning}")

def register_cli(app):
    @app.cli.command("grant-role")
    @click.argument("email")
    @click.argument("role", type=click.Choice(["PLAYER", "STAFF", "ADMIN"], case_sensitive=False))
    def grant_role(email, role):
        """Give a user the PLAYER, STAFF or ADMIN role by email (bootstrap)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        role = role.upper()
        row = Role.query.filter_by(name=role).first()
        if not row:
            row = Role(name=role)
            db.session.add(row)
            db.session.commit()

        if row not in user.roles:
            user.roles.append(row)
            db.session.commit()

        click.echo(f"{user.email} granted {role}")

    @app.cli.command("expire-carts")
    def expire_carts():
        """Expire idle pending carts and release their slots."""
        _report(cart_service.expire_stale_carts())

    @app.cli.command("expire-transactions")
    def expire_transactions():
        """Expire checked-out carts that missed the payment deadline."""
        _report(cart_service.expire_unpaid_transactions())

    @app.cli.command("expire-waitlist")
    def expire_waitlist():
        """Expire notified waitlist entries past their deadline and promote the next in line."""
        _report(waitlist_service.expire_notified_entries())

    @app.cli.command("sweep")
    def sweep():
        """Run every expiry sweep, in dependency order."""
        _report(cart_service.expire_stale_carts())
        _report(cart_service.expire_unpaid_transactions())
        _report(waitlist_service.expire_notified_entries())

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
