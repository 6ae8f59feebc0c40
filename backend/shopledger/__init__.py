# backend/shopledger/__init__.py
import logging

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config_object=Config) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object)
    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.sales import sales_bp
    from .routes.payments import payments_bp
    from .routes.restocks import restocks_bp
    from .routes.suppliers import suppliers_bp
    from .routes.returns import returns_bp
    from .routes.cashboxes import cashboxes_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(restocks_bp)
    app.register_blueprint(suppliers_bp)
    app.register_blueprint(returns_bp)
    app.register_blueprint(cashboxes_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
