# hospital_app_pkg/__init__.py

import sqlite3
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from dotenv import load_dotenv
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

# Load environment variables from .env file.
load_dotenv()

from .config import get_config, check_production_secrets

# Extensions are created unbound and attached to the app in create_app.
db = SQLAlchemy()
migrate = Migrate()


@event.listens_for(Engine, "connect")
def enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE rules unless foreign keys are enabled per connection.
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_app(config_name=None, config_overrides=None):
    """
    Application factory function.

    `config_name` is one of development/testing/production (default: FLASK_ENV).
    `config_overrides` is applied on top, mainly for tests.
    """
    app = Flask(__name__)
    config_class = get_config(config_name)
    app.config.from_object(config_class)
    if config_overrides:
        app.config.update(config_overrides)
    if config_class.__name__ == 'ProductionConfig':
        check_production_secrets(app.config)

    app.logger.setLevel(app.config['LOG_LEVEL'])

    db.init_app(app)
    migrate.init_app(app, db)

    # Blueprints are imported here to avoid circular imports.
    from .auth.routes import auth_bp
    app.register_blueprint(auth_bp, url_prefix='/api/auth')

    from .patients.routes import patients_bp
    app.register_blueprint(patients_bp, url_prefix='/api')

    from .queue.routes import queue_bp
    app.register_blueprint(queue_bp, url_prefix='/api')

    from .triage.routes import triage_bp
    app.register_blueprint(triage_bp, url_prefix='/api')

    from .beds.routes import beds_bp
    app.register_blueprint(beds_bp, url_prefix='/api')

    from .alerts.routes import alerts_bp
    app.register_blueprint(alerts_bp, url_prefix='/api')

    from .appointments.routes import appointments_bp
    app.register_blueprint(appointments_bp, url_prefix='/api')

    from .revenue.routes import revenue_bp
    app.register_blueprint(revenue_bp, url_prefix='/api')

    from .activities.routes import activities_bp
    app.register_blueprint(activities_bp, url_prefix='/api')

    from .dashboard.routes import dashboard_bp
    app.register_blueprint(dashboard_bp, url_prefix='/api')

    # Activity feed entries written on model changes
    from .activities.listeners import register_activity_listeners
    register_activity_listeners()

    from .cli import register_cli
    register_cli(app)

    @app.route('/health')
    def health_check():
        return jsonify({"status": "ok"}), 200

    register_error_handlers(app)
    return app


def register_error_handlers(app):
    from .exceptions import WorkflowError

    @app.errorhandler(WorkflowError)
    def handle_workflow_error(e):
        db.session.rollback()
        app.logger.info(f"Workflow rejected: {e.message}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e):
        app.logger.error(f"Database Error: {e}")
        db.session.rollback()
        return jsonify({"error": "A database error occurred."}), 500

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        if e.code >= 500:
            app.logger.error(f"HTTP {e.code}: {e}")
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_generic_error(e):
        app.logger.error(f"An unexpected error occurred: {e}", exc_info=True)
        db.session.rollback()
        return jsonify({"error": "An unexpected server error occurred."}), 500
