from __future__ import annotations

from datetime import date

import click
from flask import Flask

from app.cemetery import cemetery_bp
from app.core.auth import auth_bp
from app.core.config import Config
from app.core.errors import register_error_handlers
from app.core.extensions import db, login_manager, migrate
from app.core.logging import setup_logging
from app.core.models import Parish, User, seed_demo_data
from app.core.tenancy import load_tenant_context


def create_app(config_object: type[Config] | None = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object or Config)
    setup_logging(app.config.get("LOG_LEVEL", "INFO"), app.config.get("APP_ENV", "production"))

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    app.before_request(load_tenant_context)

    app.register_blueprint(auth_bp)
    app.register_blueprint(cemetery_bp)

    register_error_handlers(app)
    register_cli(app)
    return app


def register_cli(app: Flask) -> None:
    @app.cli.command("seed-demo")
    @click.option("--reset", is_flag=True, help="Delete existing data before seed.")
    def seed_demo(reset: bool) -> None:
        """Seed a demo parish with one cemetery in every occupancy state."""
        if reset:
            db.drop_all()
            db.create_all()
        if not Parish.query.first():
            seed_demo_data(db.session)
            click.echo("Demo data seeded.")
        else:
            click.echo("Seed skipped: existing parishes found.")

    @app.cli.command("concessions-expire")
    @click.option("--as-of", "as_of", type=click.DateTime(formats=["%Y-%m-%d"]), default=None, help="Reference date (YYYY-MM-DD), defaults to today.")
    @click.option("--parish-code", type=str, default=None, help="Optional parish code.")
    def concessions_expire(as_of, parish_code: str | None) -> None:
        """Expire active concessions past their expiry date and re-derive grave status."""
        from app.cemetery.occupancy import expire_concessions
        from app.core.store import transaction

        reference = as_of.date() if as_of else date.today()
        query = Parish.query
        if parish_code:
            query = query.filter_by(code=parish_code)
        parishes = query.order_by(Parish.code.asc()).all()
        if not parishes:
            click.echo("No parishes found for concession expiry.")
            return

        for parish in parishes:
            with transaction():
                expired = expire_concessions(reference, parish_id=parish.id)
            click.echo(f"[{parish.code}] as_of={reference.isoformat()} expired={len(expired)}")


@login_manager.user_loader
def load_user(user_id: str) -> User | None:
    return db.session.get(User, user_id)
