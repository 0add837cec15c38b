# expense_pwa/app.py

import logging

from flask import Flask, render_template
from flask_cors import CORS
from flask_jwt_extended import JWTManager

from . import activities, db, pwa, views
from .api import api_bp
from .auth import auth_bp, resolve_auth_session, teardown_auth_session
from .config import load_config
from .errors import StorageError
from .initialization import initialize_default_data
from .layout import register_layout

# ---------------- Configuration ----------------
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("expense-pwa")


def _init_storage(app):
    """Create/upgrade the database and seed defaults; degrade instead of crashing."""
    try:
        version = db.init_db(app.config["DB_PATH"])
        initialize_default_data(db.get_store())
    except StorageError as e:
        # unopenable file or failed seeding write, either way no usable store
        app.config["DB_INIT_ERROR"] = str(e)
        logger.warning(f"⚠️ Storage unavailable, running without local data: {e}")
        return
    finally:
        db.close_db()
    logger.info(f"✅ Database ready at {app.config['DB_PATH']} (schema v{version})")


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    if test_config:
        app.config.update(test_config)

    JWTManager(app)
    CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}}, supports_credentials=True)

    # Blueprints
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(views.bp)
    app.register_blueprint(activities.bp)
    app.register_blueprint(pwa.bp)
    app.register_blueprint(api_bp)

    register_layout(app)
    app.before_request(resolve_auth_session)
    app.teardown_request(teardown_auth_session)
    app.teardown_appcontext(db.close_db)

    with app.app_context():
        _init_storage(app)

    @app.cli.command("init-db")
    def init_db_command():
        app.config["DB_INIT_ERROR"] = None
        with app.app_context():
            _init_storage(app)
        if app.config["DB_INIT_ERROR"]:
            print(f"Database initialization failed: {app.config['DB_INIT_ERROR']}")
        else:
            print("Initialized the database.")

    @app.errorhandler(404)
    def not_found(e):
        return render_template("error.html", code=404, message="Page not found"), 404

    @app.errorhandler(500)
    def server_error(e):
        logger.exception("Unhandled error")
        return render_template("error.html", code=500, message="Something went wrong"), 500

    return app
