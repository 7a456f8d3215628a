"""
BIM Issue Tracker
Flask Application Factory.

Usage:
    from bimtrack import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask
from flask_cors import CORS
from flask_migrate import Migrate

from bimtrack.config import config
from bimtrack.core.exceptions import NotFoundError, ValidationError
from bimtrack.middleware.logging_config import configure_logging
from bimtrack.models import db
from bimtrack.utils.errors import E, api_error

logger = logging.getLogger(__name__)

migrate = Migrate()


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name])

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from bimtrack.models import auth as _auth_models                 # noqa: F401
    from bimtrack.models import project as _project_models           # noqa: F401
    from bimtrack.models import work_package as _work_package_models  # noqa: F401
    from bimtrack.models import attachment as _attachment_models     # noqa: F401
    from bimtrack.models import bcf as _bcf_models                   # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    if not app.config.get("TESTING"):
        with app.app_context():
            try:
                db.create_all()
                app.logger.info("db.create_all() completed successfully")
            except Exception as e:
                app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from bimtrack.blueprints.bcf_bp import bcf_bp

    app.register_blueprint(bcf_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("bcf-import")
    @click.argument("project_id", type=int)
    @click.argument("archive", type=click.Path(exists=True, dir_okay=False))
    @click.option("--user", "user_email", required=True, help="E-mail of the importing user.")
    def bcf_import_cmd(project_id, archive, user_email):
        """Import a BCF archive into a project."""
        from bimtrack.models.auth import User
        from bimtrack.models.project import Project
        from bimtrack.services.bcf_import_service import import_archive

        project = db.session.get(Project, project_id)
        if project is None:
            raise click.ClickException(f"Project {project_id} not found")
        user = User.query.filter_by(email=user_email).first()
        if user is None:
            raise click.ClickException(f"User {user_email} not found")

        result = import_archive(project, archive, user)
        logger.info(
            "BCF import %s: %d/%d topic(s) imported",
            result["status"], len(result["imported"]), result["total"],
        )
        for error in result["errors"]:
            logger.error("%s: %s", error["entry"], error["error"])
        click.echo(result["status"])

    # ── Health check ─────────────────────────────────────────────────────
    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "BIM Issue Tracker"}

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(NotFoundError)
    def handle_not_found(e):
        return api_error(E.NOT_FOUND, str(e))

    @app.errorhandler(ValidationError)
    def handle_validation(e):
        return api_error(E.VALIDATION_INVALID, str(e), details=e.details)

    @app.errorhandler(404)
    def not_found(e):
        from flask import request
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "Request body too large"}, 413

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")

    return app
