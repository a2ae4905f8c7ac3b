import logging
import os

from flask import Flask, jsonify
from sqlalchemy import text

from settlement.config import Config
from settlement.errors import SettlementError
from settlement.extensions import db, migrate, cors, login_manager
from settlement.services.reconciler import SettlementReconciler


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    env = (app.config.get("ENV") or "dev").strip().lower()

    # Production safety checks
    if env in ("prod", "production"):
        secret = (app.config.get("SECRET_KEY") or "").strip()
        if not secret or secret == "dev-secret" or len(secret) < 16:
            raise RuntimeError("SECRET_KEY must be set and at least 16 chars in production")
        if not (os.getenv("DATABASE_URL") or "").strip() and not (os.getenv("SQLALCHEMY_DATABASE_URI") or "").strip():
            raise RuntimeError("DATABASE_URL (or SQLALCHEMY_DATABASE_URI) must be set in production")

    # Ensure instance dir exists for SQLite paths
    os.makedirs(Config.INSTANCE_DIR, exist_ok=True)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # CORS configuration
    cors_origins = (app.config.get("CORS_ORIGINS") or "").strip()
    if env in ("prod", "production"):
        origins = [o.strip() for o in cors_origins.split(",") if o.strip()]
    else:
        origins = ["*"] if not cors_origins else [o.strip() for o in cors_origins.split(",") if o.strip()]
    cors.init_app(app, resources={r"/api/*": {"origins": origins}})

    # Init extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    from settlement import auth  # noqa: F401  (registers the login loaders)
    from settlement.segments.segment_processor_webhooks import webhooks_bp
    from settlement.segments.segment_shipping import shipping_bp
    from settlement.segments.segment_admin import admin_bp

    app.register_blueprint(webhooks_bp)
    app.register_blueprint(shipping_bp)
    app.register_blueprint(admin_bp)

    # One deduplicator per reconciler, one reconciler per app
    app.extensions["settlement_reconciler"] = SettlementReconciler.from_config(app.config)

    @app.errorhandler(SettlementError)
    def _settlement_error(e: SettlementError):
        return jsonify(e.to_dict()), e.status_code

    # Health check
    @app.get("/api/health")
    def health():
        db_state = "ok"
        try:
            db.session.execute(text("SELECT 1"))
        except Exception as e:
            app.logger.warning("health check database query failed: %s", e)
            db_state = "fail"
        return jsonify({
            "ok": True,
            "service": "settlement-backend",
            "env": env,
            "db": db_state,
        })

    if app.config.get("AUTO_CREATE_TABLES"):
        with app.app_context():
            from settlement import models  # noqa: F401
            db.create_all()

    return app
