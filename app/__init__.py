import logging
import os

from flask import Flask, jsonify, render_template, request
from flask_caching import Cache
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_socketio import SocketIO
from flask_sqlalchemy import SQLAlchemy
from flask_wtf.csrf import CSRFProtect

from config import config

logger = logging.getLogger(__name__)

ERROR_MESSAGES = {
    400: "Bad request",
    403: "Access forbidden",
    404: "Resource not found",
    429: "Too many requests",
    500: "Internal server error",
}

db = SQLAlchemy()
login_manager = LoginManager()
socketio = SocketIO()
cache = Cache()
migrate = Migrate()
csrf = CSRFProtect()


def get_real_ip():
    """
    Get the real client IP address, accounting for reverse proxies.
    Checks X-Forwarded-For, X-Real-IP, and falls back to remote_addr.
    """
    # X-Forwarded-For: client, proxy1, proxy2, ...
    if request.headers.get("X-Forwarded-For"):
        return request.headers.get("X-Forwarded-For").split(",")[0].strip()
    if request.headers.get("X-Real-IP"):
        return request.headers.get("X-Real-IP")
    return get_remote_address()


limiter = Limiter(
    key_func=get_real_ip,
    default_limits=["10000 per day", "1000 per hour"],
)


def create_app(config_name=None):
    app = Flask(__name__)

    if config_name is None:
        config_name = os.environ.get("FLASK_CONFIG", "default")

    app.config.from_object(config[config_name]())

    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SECURE"] = (
        False
        if app.config.get("DEBUG")
        else app.config.get("FLASK_ENV") == "production"
    )
    app.config["PERMANENT_SESSION_LIFETIME"] = 86400  # 24 hours
    app.config["WTF_CSRF_TIME_LIMIT"] = None

    # Keep "Week N" groups in week order in JSON responses
    app.json.sort_keys = False

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)

    allowed_origins = app.config.get("SOCKETIO_CORS_ORIGINS", "*")
    if allowed_origins == "*" and not (app.config.get("DEBUG") or app.testing):
        allowed_origins = os.environ.get(
            "ALLOWED_ORIGINS", "https://yourdomain.com"
        ).split(",")

    socketio.init_app(
        app,
        cors_allowed_origins=allowed_origins,
        async_mode=app.config.get("SOCKETIO_ASYNC_MODE", "eventlet"),
        ping_timeout=60,
        ping_interval=25,
    )
    cache.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    limiter.init_app(app)

    login_manager.login_view = "auth.login"
    login_manager.login_message = "Please log in to access this page."
    login_manager.login_message_category = "info"

    # Import and register blueprints
    from app.routes.auth import bp as auth_bp

    app.register_blueprint(auth_bp, url_prefix="/auth")

    from app.routes.main import bp as main_bp

    app.register_blueprint(main_bp)

    from app.routes.api import bp as api_bp

    app.register_blueprint(api_bp, url_prefix="/api")

    register_error_handlers(app)
    register_template_helpers(app)

    from app.utils.logging_config import setup_logging

    setup_logging(app)

    with app.app_context():
        db.create_all()

    if not app.config.get("TESTING", False):
        from app.services.scheduler_service import scheduler_service

        scheduler_service.init_app(app)

    from app import socketio_handlers  # noqa: F401 - imported for side effects

    return app


def register_template_helpers(app):
    """Expose timezone helpers to templates"""
    from app.utils.timezone_utils import countdown, format_game_time

    app.jinja_env.filters["game_time"] = format_game_time
    app.jinja_env.globals["countdown"] = countdown


def register_error_handlers(app):
    """Register global error handlers"""

    @app.after_request
    def after_request(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"

        if not app.config.get("DEBUG"):
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        csp_directives = [
            "default-src 'self'",
            "script-src 'self' 'unsafe-inline' https://cdn.socket.io",
            "style-src 'self' 'unsafe-inline'",
            "img-src 'self' data: https:",
            "connect-src 'self' wss: ws:",
            "frame-ancestors 'none'",
            "base-uri 'self'",
            "form-action 'self'",
        ]
        response.headers["Content-Security-Policy"] = "; ".join(csp_directives)

        return response

    from flask import flash, redirect
    from flask_wtf.csrf import CSRFError

    def wants_json():
        return request.path.startswith("/api/")

    @app.errorhandler(CSRFError)
    def handle_csrf_error(error):
        app.logger.warning(f"CSRF Error: {error.description} - Path: {request.path}")
        if wants_json():
            return jsonify({"error": "Invalid or missing CSRF token"}), 400
        flash("Security token expired or invalid. Please try again.", "error")
        return redirect(request.url)

    def error_handler(code, message):
        def handle(error):
            if code == 500:
                db.session.rollback()
            elif code == 400:
                app.logger.warning(
                    f"400 Bad Request: {error} - Path: {request.path} - Method: {request.method}"
                )
            if wants_json():
                return jsonify({"error": message}), code
            return render_template(f"errors/{code}.html"), code

        return handle

    for code, message in ERROR_MESSAGES.items():
        app.register_error_handler(code, error_handler(code, message))


from app import models  # noqa: F401, E402 - imported for model registration
