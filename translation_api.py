"""
Flask web server for the resumable translation job API
"""
import sys
import logging
from flask import Flask
from flask_cors import CORS

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Reduce verbosity of werkzeug (Flask HTTP server logs)
logging.getLogger('werkzeug').setLevel(logging.WARNING)

from glossa.config import (
    API_BASE_URL,
    DEFAULT_MODEL,
    DATABASE_PATH,
    OPENAI_API_KEY,
    PORT,
    HOST,
    DEBUG_MODE,
)
from glossa.api.routes import configure_routes
from glossa.core.events import EventBus
from glossa.persistence.database import Database


def validate_configuration():
    """Validate required configuration before starting server"""
    issues = []

    if not PORT or not isinstance(PORT, int):
        issues.append("PORT must be a valid integer")
    if not DEFAULT_MODEL:
        issues.append("DEFAULT_MODEL must be configured")
    if not API_BASE_URL:
        issues.append("API_BASE_URL must be configured")

    if issues:
        logger.error("=" * 70)
        logger.error("CONFIGURATION ERROR")
        logger.error("=" * 70)
        for issue in issues:
            logger.error(f"   - {issue}")
        logger.error("Create a .env file from .env.example, then restart the server")
        logger.error("=" * 70)
        raise ValueError("Configuration validation failed. See errors above.")

    if not OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY is not set: jobs will produce placeholder translations")

    logger.info("Configuration validated successfully")


def create_app(database=None, provider_factory=None, event_bus=None) -> Flask:
    """
    Build the Flask application.

    Args:
        database: Jobs database (opened at DATABASE_PATH when omitted)
        provider_factory: Builds the LLM provider for a request
        event_bus: Receives job events
    """
    app = Flask(__name__)
    CORS(app)

    database = database or Database(DATABASE_PATH)
    app.config['DATABASE'] = database
    configure_routes(app, database, provider_factory=provider_factory,
                     event_bus=event_bus or EventBus())
    return app


if __name__ == '__main__':
    try:
        validate_configuration()
    except ValueError:
        sys.exit(1)

    app = create_app()
    logger.info("=" * 60)
    logger.info("Glossa translation API")
    logger.info(f"   Listening on http://{HOST}:{PORT}")
    logger.info(f"   Database: {DATABASE_PATH}")
    logger.info(f"   Model: {DEFAULT_MODEL} at {API_BASE_URL}")
    logger.info("=" * 60)

    app.run(host=HOST, port=PORT, debug=DEBUG_MODE)
