"""
Health check route
"""
from flask import Blueprint, jsonify

from glossa.config import API_BASE_URL, DEFAULT_MODEL, OPENAI_API_KEY, SUPPORTED_LANGUAGES


def create_health_blueprint():
    """Create and configure the health blueprint"""
    bp = Blueprint('health', __name__)

    @bp.route('/health', methods=['GET'])
    def health_check():
        """API health check endpoint"""
        return jsonify({
            "status": "ok",
            "message": "Glossa translation API is running",
            "api_base_url": API_BASE_URL,
            "default_model": DEFAULT_MODEL,
            "mock_mode": not OPENAI_API_KEY,
            "supported_languages": sorted(SUPPORTED_LANGUAGES),
        })

    return bp
