"""
Flask routes orchestrator for the translation API

This module registers the route blueprints:

- blueprints/health_routes.py: Health check
- blueprints/book_routes.py: Book import, job stepping, status, glossary and chapters
"""
import logging

from flask import jsonify

from glossa.core.exceptions import CheckpointError
from .blueprints import create_book_blueprint, create_health_blueprint

logger = logging.getLogger(__name__)


def configure_routes(app, database, provider_factory=None, event_bus=None):
    """
    Configure Flask routes by registering all blueprints

    Args:
        app: Flask application instance
        database: Store holding books and jobs
        provider_factory: Builds the LLM provider for a request (OpenAI-compatible by default)
        event_bus: Receives job events
    """
    app.register_blueprint(create_health_blueprint())

    kwargs = {'event_bus': event_bus}
    if provider_factory is not None:
        kwargs['provider_factory'] = provider_factory
    app.register_blueprint(create_book_blueprint(database, **kwargs))

    _register_error_handlers(app)


def _register_error_handlers(app):
    """Register global error handlers"""

    @app.errorhandler(404)
    def route_not_found(error):
        return jsonify({"error": "API Endpoint not found"}), 404

    @app.errorhandler(CheckpointError)
    def storage_error(error):
        logger.error(f"Storage error: {error}")
        return jsonify({"error": "Storage error", "details": str(error)}), 500

    @app.errorhandler(500)
    def internal_server_error(error):
        logger.exception(f"Internal server error: {error}")
        return jsonify({"error": "Internal server error", "details": str(error)}), 500
