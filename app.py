"""Flask application factory for the snagging report service."""
import os
from typing import Optional

import click
from dotenv import load_dotenv
from flask import Flask, jsonify, request
from sqlalchemy.engine.url import make_url

from extensions import csrf, db, login_manager
from utils.kv_store import SQLAlchemyKeyValueStore
from utils.logger import init_logging
from utils.pdf_generator import DocumentGenerationError, save_report_pdf
from utils.report_store import ReportRepository
from utils.security import apply_security_headers
from utils.update_engine import NotFoundError


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(NotFoundError)
    def missing_entity(error):
        app.logger.warning("Entity not found", extra={"path": request.path, "error": str(error)})
        return jsonify({"error": str(error)}), 404

    @app.errorhandler(400)
    def bad_request(error):
        return jsonify({"error": "Bad request"}), 400

    @app.errorhandler(401)
    def unauthorized(error):
        app.logger.info("401 Unauthorized", extra={"path": request.path})
        return jsonify({"error": "Authentication required"}), 401

    @app.errorhandler(404)
    def not_found_error(error):
        app.logger.warning("404 Not Found", extra={"path": request.path, "method": request.method})
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(413)
    def payload_too_large(error):
        app.logger.warning("413 Payload Too Large", extra={"path": request.path})
        return jsonify({"error": "Upload exceeds size limits"}), 413

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.exception("500 Internal Server Error")
        return jsonify({"error": "Internal server error"}), 500


def ensure_database_directory(database_uri: str) -> None:
    """Make sure the parent directory of a file-backed SQLite database exists."""
    url = make_url(database_uri)
    if url.drivername.startswith("sqlite") and url.database and url.database != ":memory:":
        os.makedirs(os.path.dirname(url.database) or ".", exist_ok=True)


def create_app(config_name: Optional[str] = None, store=None) -> Flask:
    """Application factory with environment-aware configuration.

    ``store`` overrides the key-value persistence adapter; by default reports are
    kept in the ``kv_entries`` table of the configured database.
    """
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)

    from config import DevelopmentConfig, ProductionConfig, TestingConfig

    config_key = (config_name or os.getenv("FLASK_CONFIG") or os.getenv("FLASK_ENV") or "production").lower()
    config_map = {
        "development": DevelopmentConfig,
        "dev": DevelopmentConfig,
        "production": ProductionConfig,
        "prod": ProductionConfig,
        "testing": TestingConfig,
        "test": TestingConfig,
    }
    config_class = config_map.get(config_key, ProductionConfig)
    app.config.from_object(config_class())

    ensure_database_directory(app.config["SQLALCHEMY_DATABASE_URI"])
    os.makedirs(app.instance_path, exist_ok=True)

    init_logging(app)

    # Initialize extensions
    csrf.init_app(app)
    db.init_app(app)
    login_manager.init_app(app)

    from routes import auth_bp, main_bp, reports_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(reports_bp)

    register_error_handlers(app)

    @app.after_request
    def _after_request(response):
        return apply_security_headers(response, force_https=app.config.get("PREFERRED_URL_SCHEME") == "https")

    with app.app_context():
        db.create_all()
        repository = ReportRepository(
            store if store is not None else SQLAlchemyKeyValueStore(),
            storage_key=app.config["REPORTS_STORAGE_KEY"],
        )
        repository.load()
    app.extensions["report_repository"] = repository

    @app.cli.command("export-report")
    @click.argument("report_id")
    def export_report(report_id):
        """Write the saved version of a report to REPORT_EXPORT_DIR as a PDF."""
        try:
            path, checksum = save_report_pdf(repository.get(report_id), app.config["REPORT_EXPORT_DIR"])
        except NotFoundError as exc:
            raise click.ClickException(str(exc)) from exc
        except DocumentGenerationError as exc:
            app.logger.exception("CLI export failed", extra={"report_id": report_id})
            raise click.ClickException(str(exc)) from exc
        click.echo(f"{path} sha256={checksum}")

    return app


if __name__ == "__main__":
    port = int(os.getenv("PORT", 5000))
    create_app().run(host="0.0.0.0", port=port, use_reloader=False)
