import logging
import sys

from flask import Flask, jsonify
from flask.logging import default_handler

from app.api import api_bp
from app.auth import auth_bp
from app.config import Config
from app.extensions import db, login_manager, migrate
from app.services.notices import NoticeBus, log_notice
from app.services.security import SessionIdentityProvider


_log_handler = logging.StreamHandler(sys.stdout)
_log_handler.setFormatter(
    logging.Formatter("[%(asctime)s] %(levelname)s in %(module)s: %(message)s")
)


def _configure_logging(app):
    # app.logger is shared by every app built in this process.
    app.logger.removeHandler(default_handler)
    if _log_handler not in app.logger.handlers:
        app.logger.addHandler(_log_handler)
    level = logging.DEBUG if app.debug else app.config["LOG_LEVEL"]
    app.logger.setLevel(level)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    _configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    app.extensions["identity"] = SessionIdentityProvider()
    notices = NoticeBus()
    notices.subscribe(log_notice)
    app.extensions["notices"] = notices

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Unauthorized"}), 401

    app.register_blueprint(auth_bp)
    app.register_blueprint(api_bp)

    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        print("Initialized ThreadClip database.")

    with app.app_context():
        db.create_all()

    return app
