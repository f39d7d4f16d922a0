from flask import Flask, request, jsonify
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from config import Config
from tracking_pkg.models import db
from tracking_pkg.schemas import ma
from logger_config import (
    app_logger,
    access_logger,
    error_logger
)

# Initialize extensions (without app binding)
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200 per day", "50 per hour"],
    storage_uri="memory://"
)


def create_app(config_class=Config):
    """
    Flask application factory
    """
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Initialize extensions
    db.init_app(app)
    ma.init_app(app)
    limiter.init_app(app)

    # Credentials (cookie auth) require explicit origins
    CORS(
        app,
        supports_credentials=True,
        origins=app.config.get('ALLOWED_ORIGINS') or ["http://localhost:3000"]
    )

    # Register blueprints
    try:
        from tracking_pkg.routes import auth_routes, orders_routes, admin_routes, health

        app.register_blueprint(auth_routes.bp, url_prefix="/api/auth")
        app.register_blueprint(orders_routes.bp, url_prefix="/api/orders")
        app.register_blueprint(admin_routes.bp, url_prefix="/api/admin")
        app.register_blueprint(health.bp, url_prefix="/api")

        app_logger.info("All blueprints registered successfully")
    except Exception as e:
        app_logger.exception(f"Error registering blueprints: {e}")
        raise

    if app.config.get('AUTO_CREATE_TABLES'):
        with app.app_context():
            db.create_all()

    # Register handlers
    register_error_handlers(app)
    register_request_handlers(app)

    # Startup logs
    app_logger.info("Flask application initialized successfully")
    app_logger.info(f"Environment: {app.config.get('ENV')}")
    app_logger.info(f"Debug mode: {app.config.get('DEBUG')}")

    return app


def register_error_handlers(app):
    """
    Register global error handlers
    """

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({
            "error": "Endpoint not found",
            "path": request.path,
            "method": request.method
        }), 404

    @app.errorhandler(403)
    def forbidden(error):
        return jsonify({
            "error": "Forbidden",
            "message": "You do not have permission to access this resource"
        }), 403

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": "Method not allowed", "method": request.method}), 405

    @app.errorhandler(429)
    def rate_limited(error):
        access_logger.warning(f"{request.remote_addr} - rate limited on {request.path}")
        return jsonify({
            "error": "Too many requests",
            "message": "Please wait a moment and try again"
        }), 429

    @app.errorhandler(500)
    def internal_error(error):
        error_logger.exception("Internal server error")
        return jsonify({
            "error": "Internal server error",
            "message": "An unexpected error occurred"
        }), 500


def register_request_handlers(app):
    """
    Register before/after request handlers
    """

    @app.before_request
    def log_request():
        if request.path.startswith("/api/"):
            access_logger.info(
                f"{request.remote_addr} - {request.method} {request.path}"
            )

    @app.after_request
    def log_response(response):
        if request.path.startswith("/api/"):
            access_logger.info(
                f"{request.method} {request.path} - {response.status_code}"
            )

        # Security headers
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        # Tracking responses carry billing details
        response.headers["Cache-Control"] = "no-store"
        return response
