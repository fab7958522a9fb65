# backend/backoffice/__init__.py
from flask import Flask, request, send_from_directory

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    # Overrides (tests) must land before extensions bind to the database URI
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.articles import articles_bp
    from .routes.clients import clients_bp
    from .routes.suppliers import suppliers_bp
    from .routes.taxes import taxes_bp
    from .routes.pricing import pricing_bp
    from .routes.tickets import tickets_bp
    from .routes.quotes import quotes_bp
    from .routes.invoices import invoices_bp
    from .routes.purchase_orders import purchase_orders_bp
    from .routes.payments import payments_bp
    from .routes.treasury import cash_bp, banks_bp
    from .routes.reports import reports_bp
    from .routes.settings import settings_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(articles_bp)
    app.register_blueprint(clients_bp)
    app.register_blueprint(suppliers_bp)
    app.register_blueprint(taxes_bp)
    app.register_blueprint(pricing_bp)
    app.register_blueprint(tickets_bp)
    app.register_blueprint(quotes_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(purchase_orders_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(cash_bp)
    app.register_blueprint(banks_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(settings_bp)

    @app.get(app.config["UPLOAD_URL_PREFIX"].rstrip("/") + "/<path:filename>")
    def uploaded_file(filename):
        return send_from_directory(app.config["UPLOAD_FOLDER"], filename)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
