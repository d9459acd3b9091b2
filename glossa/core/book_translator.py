"""
In-process translation of a whole book (offline/CLI mode).

Chapters are translated by a chapter-level batcher, and the nodes of each
chapter by an item-level batcher. Finished segments are appended to the
checkpoint, so a restarted run skips them. After every chapter is done,
a consistency sweep runs over the whole book and the results it corrects
are checkpointed again.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from glossa.config import TranslationConfig
from glossa.core.batcher import BoundedBatcher
from glossa.core.context_window import ContextWindowBuilder
from glossa.core.events import EventBus, EventType
from glossa.core.exceptions import TranslationError
from glossa.core.glossary.builder import GlossaryBuilder
from glossa.core.glossary.enforcer import ConsistencyEnforcer
from glossa.core.glossary.store import GlossaryStore, InMemoryGlossaryStore
from glossa.core.llm.base import LLMProvider
from glossa.core.models import Book, Chapter, TextNode, TranslationResult
from glossa.core.segment_translator import SegmentTranslator
from glossa.persistence.checkpoint_manager import InMemoryCheckpointManager

logger = logging.getLogger(__name__)

FAILED_PREVIEW_LENGTH = 30


def failure_placeholder(text: str) -> str:
    """Marker written for a segment skipped after a failure"""
    return f"[Translation failed: {text[:FAILED_PREVIEW_LENGTH]}...]"


class BookTranslator:
    """
    Translates a parsed Book end to end.

    Args:
        llm: Provider used for every model call
        config: Languages, concurrency and context settings
        store: Glossary store (in-memory when omitted)
        checkpoint: Checkpoint index (in-memory when omitted)
        event_bus: Receives glossary, chapter and segment events
        skip_failures: Write a failure marker instead of aborting when a
            segment cannot be translated
        on_progress: Called with (completed, total) segments after each node
    """

    def __init__(self, llm: LLMProvider, config: Optional[TranslationConfig] = None,
                 store: Optional[GlossaryStore] = None,
                 checkpoint: Optional[InMemoryCheckpointManager] = None,
                 event_bus: Optional[EventBus] = None,
                 skip_failures: bool = False,
                 on_progress: Optional[Callable[[int, int], None]] = None):
        self.llm = llm
        self.config = config or TranslationConfig()
        self.store = store or InMemoryGlossaryStore()
        self.checkpoint = checkpoint or InMemoryCheckpointManager()
        self.event_bus = event_bus or EventBus()
        self.skip_failures = skip_failures
        self.on_progress = on_progress

        self.enforcer = ConsistencyEnforcer(self.config.target_language)
        self.translator = SegmentTranslator(
            llm, self.store, self.enforcer,
            source_language=self.config.source_language,
            target_language=self.config.target_language,
            event_bus=self.event_bus,
        )
        self._completed = 0
        self._total = 0

    async def translate_book(self, book: Book) -> Dict[str, Any]:
        """
        Run glossary extraction, translation and the final sweep.

        Returns:
            Serializable translated book (see ``_build_output``)

        Raises:
            TranslationError: When a segment fails and skip_failures is off
        """
        self._completed = 0
        self._total = book.total_nodes

        builder = GlossaryBuilder(self.llm, self.store, self.enforcer, self.event_bus)
        glossary = await builder.build(book.all_texts(), self.config.source_language,
                                       self.config.target_language)
        logger.info(f"Glossary ready with {len(glossary)} terms")

        translated_title = await self._translate_title(book.title)

        chapter_batcher = BoundedBatcher(self.config.chapter_concurrency, delay=0)
        chapter_results = await chapter_batcher.run(book.chapters, self._translate_chapter)

        await self._final_sweep(book)

        self.event_bus.emit(EventType.BOOK_COMPLETED, source="book_translator",
                            title=book.title, segments=self._total)
        return self._build_output(book, translated_title, chapter_results,
                                  await self.store.get_all_entries())

    async def _translate_title(self, title: str) -> str:
        try:
            return await self.translator.translate_title(title)
        except TranslationError as e:
            logger.warning(f"Title translation failed, keeping original '{title}': {e}")
            return title

    async def _translate_chapter(self, chapter: Chapter, _: int) -> Dict[str, Any]:
        self.event_bus.emit(EventType.CHAPTER_STARTED, source="book_translator",
                            chapter=chapter.number, items_total=len(chapter.nodes))

        context_builder = ContextWindowBuilder(
            [node.plain_text for node in chapter.nodes],
            before=self.config.context_before,
            after=self.config.context_after,
            max_tokens=self.config.context_max_tokens,
        )
        finished: Dict[int, str] = {}
        for index, node in enumerate(chapter.nodes):
            previous = self._checkpointed(chapter.number, node)
            if previous is not None:
                finished[index] = previous.translated_text

        async def translate_node(node: TextNode, index: int) -> str:
            if index in finished:
                self._report()
                return finished[index]

            context = context_builder.format(index, finished)
            translated = await self.translator.translate(node.plain_text, context, node.paragraph_type)
            # Mock placeholders are never checkpointed
            if not self.translator.mock_mode:
                await self.checkpoint.save(TranslationResult(
                    node_address=node.address,
                    chapter_number=chapter.number,
                    source_text=node.plain_text,
                    translated_text=translated,
                    target_language=self.config.target_language,
                ))
            finished[index] = translated
            self.event_bus.emit(EventType.SEGMENT_TRANSLATED, source="book_translator",
                                chapter=chapter.number, address=node.address)
            self._report()
            return translated

        def mark_failed(node: TextNode, index: int, error: Exception) -> str:
            self.event_bus.emit(EventType.SEGMENT_FAILED, source="book_translator",
                                chapter=chapter.number, address=node.address, error=str(error))
            self._report()
            return failure_placeholder(node.plain_text)

        item_batcher = BoundedBatcher(self.config.item_concurrency, delay=self.config.delay_between_items)
        translations = await item_batcher.run(
            chapter.nodes, translate_node,
            on_error=mark_failed if self.skip_failures else None,
        )

        translated_title = await self._translate_title(chapter.title)
        self.event_bus.emit(EventType.CHAPTER_COMPLETED, source="book_translator",
                            chapter=chapter.number)
        return {
            'number': chapter.number,
            'title': chapter.title,
            'translated_title': translated_title,
            'translations': translations,
        }

    async def _final_sweep(self, book: Book) -> None:
        """Re-enforce every checkpointed result and checkpoint the corrected ones"""
        results = [result
                   for chapter in book.chapters
                   for result in (self._checkpointed(chapter.number, node) for node in chapter.nodes)
                   if result is not None]
        corrected, changed = self.enforcer.sweep((r.source_text, r.translated_text) for r in results)

        for result, fixed in zip(results, corrected):
            if fixed != result.translated_text:
                await self.checkpoint.save(TranslationResult(
                    node_address=result.node_address,
                    chapter_number=result.chapter_number,
                    source_text=result.source_text,
                    translated_text=fixed,
                    target_language=self.config.target_language,
                ))

        if changed:
            self.event_bus.emit(EventType.CONSISTENCY_FIXED, source="book_translator", segments=changed)

    def _checkpointed(self, chapter_number: int, node: TextNode) -> Optional[TranslationResult]:
        """
        Checkpointed result for a node, if it was translated from the same
        source text into the current target language.

        Addresses repeat across books, so a shared checkpoint file may hold
        records for other books or languages under the same key.
        """
        result = self.checkpoint.get(chapter_number, node.address)
        if result is None:
            return None
        if result.source_text != node.plain_text or result.target_language != self.config.target_language:
            return None
        return result

    def _report(self) -> None:
        self._completed += 1
        if self.on_progress is not None:
            self.on_progress(self._completed, self._total)

    def _build_output(self, book: Book, translated_title: str,
                      chapter_results: List[Dict[str, Any]],
                      glossary: Dict[str, str]) -> Dict[str, Any]:
        chapters = []
        for chapter, result in zip(book.chapters, chapter_results):
            segments = []
            for node, translated in zip(chapter.nodes, result['translations']):
                # The sweep may have corrected the result after the chapter finished
                checkpointed = self._checkpointed(chapter.number, node)
                segments.append({
                    'address': node.address,
                    'order_index': node.order_index,
                    'source_text': node.plain_text,
                    'source_markup': node.inner_markup,
                    'translated_text': checkpointed.translated_text if checkpointed else translated,
                })
            chapters.append({
                'number': chapter.number,
                'title': chapter.title,
                'translated_title': result['translated_title'],
                'segments': segments,
            })

        return {
            'title': book.title,
            'translated_title': translated_title,
            'author': book.author,
            'source_language': self.config.source_language,
            'target_language': self.config.target_language,
            'glossary': glossary,
            'chapters': chapters,
        }
