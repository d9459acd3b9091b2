"""
Resumable translation job.

A job is advanced by repeated calls to ``translate_next``. Each call reads the
durable cursor, performs one bounded unit of work and writes the cursor back:

    pending -> extracting_glossary -> translating -> completed
    any state -> error (on an unhandled exception)

The bounded unit is one of: the glossary pass, the book title, one batch of
at most ``batch_size`` nodes of the current chapter, skipping an empty
chapter, or the final consistency sweep. Translation rows of a batch are
written before the cursor moves, and rows are keyed by (chapter, address),
so a crash in between only causes that batch to be translated again and
overwritten.
"""

import logging
from typing import Any, Dict, List, Optional

from glossa.config import PENDING_PLACEHOLDER, TranslationConfig
from glossa.core.batcher import BoundedBatcher
from glossa.core.context_window import ContextWindowBuilder
from glossa.core.document.extractor import extract_book
from glossa.core.events import EventBus, EventType
from glossa.core.exceptions import (
    CheckpointError,
    LLMAuthenticationError,
    TranslationError,
)
from glossa.core.glossary.builder import GlossaryBuilder
from glossa.core.glossary.enforcer import ConsistencyEnforcer
from glossa.core.llm.base import LLMProvider
from glossa.core.models import BookData, JobStatus, TextNode, TranslationJob
from glossa.core.segment_translator import SegmentTranslator
from glossa.persistence.database import Database
from glossa.persistence.glossary_store import SqliteGlossaryStore

logger = logging.getLogger(__name__)

PHASE_GLOSSARY = "glossary"
PHASE_TITLE = "title"
PHASE_TRANSLATING = "translating"
PHASE_COMPLETED = "completed"
PHASE_ERROR = "error"


def import_book(database: Database, book_data: BookData,
                source_language: str, target_language: str,
                book_id: Optional[str] = None) -> str:
    """
    Extract a book, store it and create its pending job.

    Returns:
        The book identifier
    """
    book = extract_book(book_data)
    book_id = database.create_book(book, book_id=book_id)
    database.create_job(TranslationJob(
        book_id=book_id,
        source_language=source_language,
        target_language=target_language,
        total_chapters=len(book.chapters),
    ))
    logger.info(f"Imported '{book.title}' as {book_id}: {len(book.chapters)} chapters, "
                f"{book.total_nodes} text nodes")
    return book_id


class TranslationJobDriver:
    """
    Advances stored translation jobs one bounded unit at a time.

    Args:
        database: Store holding books, rows, jobs and glossaries
        llm: Provider used for every model call
        config: Concurrency, batch and context settings
        event_bus: Receives phase, chapter and segment events
    """

    def __init__(self, database: Database, llm: LLMProvider,
                 config: Optional[TranslationConfig] = None,
                 event_bus: Optional[EventBus] = None):
        self.database = database
        self.llm = llm
        self.config = config or TranslationConfig()
        self.event_bus = event_bus or EventBus()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def translate_next(self, book_id: str) -> Dict[str, Any]:
        """
        Perform one unit of work on a job.

        Returns:
            ``{"done": bool, "progress": {...}}``, plus ``"error"`` when the
            job is in (or has just entered) the error state or does not exist
        """
        job = self.database.get_job(book_id)
        if job is None:
            return {'done': True, 'progress': None, 'error': f"No translation job for book {book_id}"}

        if job.status == JobStatus.COMPLETED:
            return self._result(job, PHASE_COMPLETED, done=True)
        if job.status == JobStatus.ERROR:
            return self._result(job, PHASE_ERROR, done=True, error=job.error_message)

        try:
            return await self._step(job)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.exception(f"Translation job {book_id} failed")
            self.database.set_job_error(book_id, message)
            job.status = JobStatus.ERROR
            job.error_message = message
            self.event_bus.emit(EventType.JOB_FAILED, source="job_driver", book_id=book_id, error=message)
            return self._result(job, PHASE_ERROR, done=True, error=message)

    def get_status(self, book_id: str) -> Optional[Dict[str, Any]]:
        """
        Externally visible job record.

        Returns:
            ``{"status", "progress", "error"}`` or None when no job exists
        """
        job = self.database.get_job(book_id)
        if job is None:
            return None
        phase = {
            JobStatus.PENDING: JobStatus.PENDING.value,
            JobStatus.EXTRACTING_GLOSSARY: PHASE_GLOSSARY,
            JobStatus.TRANSLATING: PHASE_TRANSLATING,
            JobStatus.COMPLETED: PHASE_COMPLETED,
            JobStatus.ERROR: PHASE_ERROR,
        }[job.status]
        return {
            'status': job.status.value,
            'progress': self._progress(job, phase),
            'error': job.error_message,
        }

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def _step(self, job: TranslationJob) -> Dict[str, Any]:
        store = SqliteGlossaryStore(self.database, job.book_id)
        enforcer = ConsistencyEnforcer(job.target_language, await store.get_all_entries())
        for term, variants in self.database.get_glossary_variants(job.book_id).items():
            for variant in variants:
                enforcer.register_variant(term, variant)

        if job.status == JobStatus.PENDING:
            self._set_status(job, JobStatus.EXTRACTING_GLOSSARY)

        if job.status == JobStatus.EXTRACTING_GLOSSARY:
            return await self._extract_glossary(job, store, enforcer)

        if job.status != JobStatus.TRANSLATING:
            raise TranslationError(f"Unexpected job status {job.status.value}",
                                   context={'book_id': job.book_id}, recoverable=False)

        translator = SegmentTranslator(
            self.llm, store, enforcer,
            source_language=job.source_language,
            target_language=job.target_language,
            event_bus=self.event_bus,
        )

        if not job.title_translated:
            result = await self._translate_book_title(job, translator)
        elif job.current_chapter > job.total_chapters:
            result = await self._finish(job, enforcer)
        else:
            result = await self._translate_batch(job, translator)

        self._persist_glossary_changes(job, enforcer, await store.get_all_entries())
        return result

    async def _extract_glossary(self, job: TranslationJob, store: SqliteGlossaryStore,
                                enforcer: ConsistencyEnforcer) -> Dict[str, Any]:
        texts: List[str] = []
        for number in range(1, job.total_chapters + 1):
            chapter = self.database.get_chapter(job.book_id, number)
            if chapter:
                texts.extend(node.plain_text for node in chapter['nodes'])

        builder = GlossaryBuilder(self.llm, store, enforcer, self.event_bus)
        glossary = await builder.build(texts, job.source_language, job.target_language)
        self.database.add_glossary_variants(job.book_id, enforcer.registered_variants)

        job.glossary_snapshot = glossary
        job.glossary_extracted = True
        job.current_chapter = 1
        job.current_item_offset = 0
        self._set_status(job, JobStatus.TRANSLATING)
        return self._result(job, PHASE_GLOSSARY)

    async def _translate_book_title(self, job: TranslationJob,
                                    translator: SegmentTranslator) -> Dict[str, Any]:
        book = self.database.get_book(job.book_id) or {}
        title = book.get('title', '')
        try:
            translated = await translator.translate_title(title)
        except TranslationError as e:
            logger.warning(f"Book title translation failed, keeping original: {e}")
            translated = title

        self.database.set_book_translated_title(job.book_id, translated)
        job.title_translated = True
        self.database.update_job(job)
        return self._result(job, PHASE_TITLE)

    async def _translate_batch(self, job: TranslationJob,
                               translator: SegmentTranslator) -> Dict[str, Any]:
        chapter = self.database.get_chapter(job.book_id, job.current_chapter)
        if not chapter or not chapter['nodes']:
            logger.warning(f"Chapter {job.current_chapter} of {job.book_id} is missing or empty, skipping")
            self._advance_chapter(job)
            return self._result(job, PHASE_TRANSLATING)

        nodes: List[TextNode] = chapter['nodes']
        start = job.current_item_offset
        batch = nodes[start:start + self.config.batch_size]

        if start == 0:
            self.event_bus.emit(EventType.CHAPTER_STARTED, source="job_driver",
                                book_id=job.book_id, chapter=job.current_chapter,
                                items_total=len(nodes))

        context_builder = ContextWindowBuilder(
            [node.plain_text for node in nodes],
            before=self.config.context_before,
            after=self.config.context_after,
            max_tokens=self.config.context_max_tokens,
        )
        position = {node.address: index for index, node in enumerate(nodes)}
        finished = {position[row['address']]: row['translated_text']
                    for row in self.database.get_translations(chapter['chapter_id'])
                    if row['address'] in position}

        async def translate_node(node: TextNode, _: int) -> str:
            context = context_builder.format(position[node.address], finished)
            translated = await translator.translate(node.plain_text, context, node.paragraph_type)
            self.event_bus.emit(EventType.SEGMENT_TRANSLATED, source="job_driver",
                                book_id=job.book_id, chapter=job.current_chapter,
                                address=node.address)
            return translated

        def use_placeholder(node: TextNode, _: int, error: Exception) -> str:
            # Bad credentials and job store failures end the job
            if isinstance(error, (LLMAuthenticationError, CheckpointError)) or not isinstance(error, TranslationError):
                raise error
            self.event_bus.emit(EventType.SEGMENT_FAILED, source="job_driver",
                                book_id=job.book_id, chapter=job.current_chapter,
                                address=node.address, error=str(error))
            return PENDING_PLACEHOLDER

        batcher = BoundedBatcher(self.config.item_concurrency, delay=self.config.delay_between_items)
        translations = await batcher.run(batch, translate_node, on_error=use_placeholder)

        self.database.save_translations(chapter['chapter_id'], [
            {
                'address': node.address,
                'order_index': node.order_index,
                'source_text': node.plain_text,
                'source_markup': node.inner_markup,
                'translated_text': translated,
            }
            for node, translated in zip(batch, translations)
        ])

        job.current_item_offset = start + len(batch)
        if job.current_item_offset >= len(nodes):
            await self._translate_chapter_title(chapter, translator)
            self.event_bus.emit(EventType.CHAPTER_COMPLETED, source="job_driver",
                                book_id=job.book_id, chapter=job.current_chapter)
            self._advance_chapter(job)
        else:
            self.database.update_job(job)

        return self._result(job, PHASE_TRANSLATING, items_completed=start + len(batch),
                            items_total=len(nodes))

    async def _translate_chapter_title(self, chapter: Dict[str, Any],
                                       translator: SegmentTranslator) -> None:
        title = chapter['title'] or ''
        try:
            translated = await translator.translate_title(title)
        except TranslationError as e:
            logger.warning(f"Chapter {chapter['chapter_number']} title translation failed, "
                           f"keeping original: {e}")
            translated = title
        self.database.set_chapter_translated_title(chapter['chapter_id'], translated)

    async def _finish(self, job: TranslationJob, enforcer: ConsistencyEnforcer) -> Dict[str, Any]:
        rows = self.database.get_book_translations(job.book_id)
        corrected, changed = enforcer.sweep((row['source_text'], row['translated_text']) for row in rows)

        by_chapter: Dict[int, List[Dict[str, Any]]] = {}
        for row, fixed in zip(rows, corrected):
            if fixed != row['translated_text']:
                by_chapter.setdefault(row['chapter_id'], []).append(dict(row, translated_text=fixed))
        for chapter_id, chapter_rows in by_chapter.items():
            self.database.save_translations(chapter_id, chapter_rows)

        if changed:
            self.event_bus.emit(EventType.CONSISTENCY_FIXED, source="job_driver",
                                book_id=job.book_id, segments=changed)

        self._set_status(job, JobStatus.COMPLETED)
        self.event_bus.emit(EventType.BOOK_COMPLETED, source="job_driver",
                            book_id=job.book_id, rows=len(rows))
        return self._result(job, PHASE_COMPLETED, done=True)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _advance_chapter(self, job: TranslationJob) -> None:
        job.completed_chapters = min(job.completed_chapters + 1, job.total_chapters)
        job.current_chapter += 1
        job.current_item_offset = 0
        self.database.update_job(job)

    def _set_status(self, job: TranslationJob, status: JobStatus) -> None:
        previous = job.status
        job.status = status
        self.database.update_job(job)
        self.event_bus.emit(EventType.JOB_PHASE_CHANGED, source="job_driver",
                            book_id=job.book_id, old=previous.value, new=status.value)

    def _persist_glossary_changes(self, job: TranslationJob, enforcer: ConsistencyEnforcer,
                                  entries: Dict[str, str]) -> None:
        # A term whose value changed since the last snapshot keeps its old
        # rendering as a variant so the final sweep rewrites earlier rows
        for term, previous in job.glossary_snapshot.items():
            current = entries.get(term)
            if current is not None and current != previous:
                enforcer.register_variant(term, previous)
        self.database.add_glossary_variants(job.book_id, enforcer.registered_variants)

        if entries != job.glossary_snapshot:
            job.glossary_snapshot = entries
            self.database.update_job(job)

    def _progress(self, job: TranslationJob, phase: str,
                  items_completed: Optional[int] = None,
                  items_total: Optional[int] = None) -> Dict[str, Any]:
        if items_total is None:
            items_total = 0
            if 1 <= job.current_chapter <= job.total_chapters:
                chapter = self.database.get_chapter(job.book_id, job.current_chapter)
                items_total = len(chapter['nodes']) if chapter else 0
        return {
            'phase': phase,
            'chapters_completed': job.completed_chapters,
            'chapters_total': job.total_chapters,
            'current_chapter': min(job.current_chapter, job.total_chapters),
            'items_completed': job.current_item_offset if items_completed is None else items_completed,
            'items_total': items_total,
        }

    def _result(self, job: TranslationJob, phase: str, done: bool = False,
                error: Optional[str] = None, **progress_overrides) -> Dict[str, Any]:
        result = {'done': done, 'progress': self._progress(job, phase, **progress_overrides)}
        if error is not None:
            result['error'] = error
        return result
