"""
Book import and resumable translation job routes
"""
import asyncio
import logging
from typing import Callable, Optional

from flask import Blueprint, request, jsonify

from glossa.config import TranslationConfig
from glossa.core.events import EventBus
from glossa.core.exceptions import ConfigurationError, DocumentError
from glossa.core.job_driver import TranslationJobDriver, import_book
from glossa.core.llm import create_llm_provider
from glossa.core.llm.base import LLMProvider
from glossa.core.models import BookData
from glossa.persistence.database import Database

logger = logging.getLogger(__name__)


def create_book_blueprint(database: Database,
                          provider_factory: Callable[[TranslationConfig], LLMProvider] = create_llm_provider,
                          event_bus: Optional[EventBus] = None):
    """
    Create and configure the book blueprint

    Args:
        database: Store holding books, jobs and translation rows
        provider_factory: Builds the LLM provider for one request
        event_bus: Receives job events (a fresh bus per request when omitted)
    """
    bp = Blueprint('books', __name__)

    @bp.route('/api/books', methods=['POST'])
    def import_book_request():
        """Import BookData and create a pending translation job"""
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or 'book' not in data:
            return jsonify({"error": "Request body must be a JSON object with a 'book' field"}), 400

        try:
            config = TranslationConfig.from_web_request(data).validate()
            book_data = BookData.from_dict(data['book'])
            book_id = import_book(database, book_data, config.source_language,
                                  config.target_language, book_id=data.get('book_id'))
        except (ConfigurationError, DocumentError) as e:
            return jsonify({"error": str(e)}), 400

        job = database.get_job(book_id)
        return jsonify({
            "book_id": book_id,
            "status": job.status.value,
            "chapters_total": job.total_chapters,
        }), 201

    @bp.route('/api/books/<book_id>/translate-next', methods=['POST'])
    def translate_next_request(book_id):
        """Advance the book's job by one bounded unit of work"""
        job = database.get_job(book_id)
        if job is None:
            return jsonify({"done": True, "progress": None,
                            "error": f"No translation job for book {book_id}"}), 404

        data = request.get_json(silent=True) or {}
        data.update(source_language=job.source_language, target_language=job.target_language)
        try:
            config = TranslationConfig.from_web_request(data).validate()
        except ConfigurationError as e:
            return jsonify({"error": str(e)}), 400

        async def run():
            async with provider_factory(config) as llm:
                driver = TranslationJobDriver(database, llm, config, event_bus)
                return await driver.translate_next(book_id)

        return jsonify(asyncio.run(run()))

    @bp.route('/api/books/<book_id>/status', methods=['GET'])
    def get_job_status(book_id):
        """Get status and progress of a book's job"""
        status = TranslationJobDriver(database, llm=None).get_status(book_id)
        if status is None:
            return jsonify({"error": "Translation job not found"}), 404
        return jsonify(status)

    @bp.route('/api/books/<book_id>/glossary', methods=['GET'])
    def get_glossary(book_id):
        """Get the glossary snapshot of a book"""
        if database.get_book(book_id) is None:
            return jsonify({"error": "Book not found"}), 404
        glossary = database.get_glossary(book_id)
        return jsonify({"book_id": book_id, "count": len(glossary), "glossary": glossary})

    @bp.route('/api/books/<book_id>/chapters/<int:chapter_number>', methods=['GET'])
    def get_chapter(book_id, chapter_number):
        """Get one chapter with its translation rows"""
        chapter = database.get_chapter(book_id, chapter_number)
        if chapter is None:
            return jsonify({"error": "Chapter not found"}), 404

        rows = {row['address']: row for row in database.get_translations(chapter['chapter_id'])}
        segments = []
        for node in chapter['nodes']:
            row = rows.get(node.address)
            segments.append({
                "address": node.address,
                "order_index": node.order_index,
                "source_text": node.plain_text,
                "source_markup": node.inner_markup,
                "translated_text": row['translated_text'] if row else None,
            })

        return jsonify({
            "book_id": book_id,
            "number": chapter['chapter_number'],
            "title": chapter['title'],
            "translated_title": chapter['translated_title'],
            "segments": segments,
        })

    return bp
