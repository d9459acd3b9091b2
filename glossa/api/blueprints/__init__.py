"""
API Routes
"""
from .book_routes import create_book_blueprint
from .health_routes import create_health_blueprint

__all__ = [
    'create_book_blueprint',
    'create_health_blueprint',
]
