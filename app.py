import logging
import os
from pathlib import Path

from flask import Flask, jsonify
from sqlalchemy import text

from models import db
from app_core.errors import install_json_error_handlers
from app_core.api import api_bp
from app_core.metrics import metrics_bp

logger = logging.getLogger("cinetrack")


def _configure(app, overrides=None):
    """Environment first, then explicit overrides (tests) before the engine is bound."""
    app.config.update(
        SECRET_KEY=os.getenv("SECRET_KEY", "dev-secret"),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        API_TOKEN=os.getenv("API_TOKEN"),
    )

    database_url = os.getenv("DATABASE_URL")
    if database_url:
        # credentials stay out of the log
        logger.info("Using DATABASE_URL -> %s", database_url.split("@", 1)[-1])
    else:
        db_file = Path(app.instance_path) / "cinetrack.db"
        db_file.parent.mkdir(parents=True, exist_ok=True)
        logger.info("DB file -> %s", db_file.resolve())
        database_url = f"sqlite:///{db_file}"
    app.config["SQLALCHEMY_DATABASE_URI"] = database_url

    if overrides:
        app.config.update(overrides)


def _db_health():
    try:
        db.session.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.warning("Health check could not reach the database", exc_info=True)
        return False


def create_app(config=None):
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = Flask(__name__)
    _configure(app, config)

    install_json_error_handlers(app)
    db.init_app(app)

    with app.app_context():
        try:
            db.create_all()
        except Exception:
            logger.exception("Database initialization skipped due to error")

    @app.get("/health")
    def health():
        """200 when the database answers, 500 otherwise."""
        ok = _db_health()
        return jsonify({"status": "ok" if ok else "error", "database": ok}), (200 if ok else 500)

    app.register_blueprint(metrics_bp)
    app.register_blueprint(api_bp)
    return app


if __name__ == "__main__":
    # development server
    create_app().run(host="0.0.0.0", port=int(os.getenv("PORT", 8000)), debug=True)
