"""
Data structures shared by the extraction, translation and persistence layers.
"""

import re
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import List, Dict, Any, Optional

from glossa.core.exceptions import BookDataError


class ParagraphType(Enum):
    """Kind of text unit, used to add a hint to the translation prompt"""
    NORMAL = "normal"
    POEM = "poem"
    CHAPTER = "chapter"
    TITLE = "title"


_CHAPTER_HEADING_RE = re.compile(r'^(chapter|part)\s+[ivxlcdm\d]+', re.IGNORECASE)
_POEM_CLASSES = ('poem', 'verse', 'stanza', 'poetry', 'song', 'lyrics')
_LINE_BREAK_RE = re.compile(r'<br\s*/?>|\n', re.IGNORECASE)
_TAG_RE = re.compile(r'<[^>]+>')


def _lines(markup: str) -> List[str]:
    """Non-empty lines of a unit, split on <br> and newlines"""
    parts = (_TAG_RE.sub('', part).strip() for part in _LINE_BREAK_RE.split(markup))
    return [part for part in parts if part]


def detect_paragraph_type(text: str, tag_name: str = "", class_name: str = "",
                          markup: str = "") -> ParagraphType:
    """
    Guess the paragraph type from its tag, CSS class and line structure.

    Args:
        text: Plain text of the unit
        tag_name: Lower-case tag name of the source element
        class_name: Value of the element's class attribute
        markup: Inner markup of the unit, whose <br> tags mark line breaks
          (plain text is collapsed to one line during extraction)

    Returns:
        Detected ParagraphType
    """
    tag = (tag_name or "").lower()
    css = (class_name or "").lower()

    if tag in ('h1', 'h2', 'h3') or 'title' in css:
        return ParagraphType.TITLE

    if _CHAPTER_HEADING_RE.match(text.strip()):
        return ParagraphType.CHAPTER

    if any(cls in css for cls in _POEM_CLASSES):
        return ParagraphType.POEM

    # Several short lines read as verse
    lines = _lines(markup or text)
    if len(lines) >= 3 and sum(len(line) for line in lines) / len(lines) < 60:
        return ParagraphType.POEM

    return ParagraphType.NORMAL


@dataclass(frozen=True)
class TextNode:
    """One addressable, translatable content unit inside a chapter"""
    address: str
    plain_text: str
    inner_markup: str
    order_index: int
    tag_name: str = ""
    class_name: str = ""

    @property
    def paragraph_type(self) -> ParagraphType:
        return detect_paragraph_type(self.plain_text, self.tag_name, self.class_name, self.inner_markup)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TextNode':
        return cls(
            address=data['address'],
            plain_text=data['plain_text'],
            inner_markup=data.get('inner_markup', ''),
            order_index=int(data['order_index']),
            tag_name=data.get('tag_name', ''),
            class_name=data.get('class_name', ''),
        )


@dataclass
class Chapter:
    """A chapter of a parsed book"""
    number: int
    title: str
    original_title: str
    raw_markup: str
    nodes: List[TextNode] = field(default_factory=list)


@dataclass
class Book:
    """A parsed book, as produced by extraction"""
    title: str
    author: str
    language: str
    styles: str = ""
    chapters: List[Chapter] = field(default_factory=list)

    @property
    def total_nodes(self) -> int:
        return sum(len(chapter.nodes) for chapter in self.chapters)

    def all_texts(self) -> List[str]:
        """Plain text of every node, in reading order"""
        return [node.plain_text for chapter in self.chapters for node in chapter.nodes]


@dataclass
class ChapterSource:
    """Raw chapter as delivered by document ingestion"""
    html: str
    title: Optional[str] = None


@dataclass
class BookData:
    """
    Parsed container contents handed to the pipeline.

    Container unpacking (archive, manifest, spine) happens upstream; this is
    the shape it produces.
    """
    title: str
    author: str = ""
    language: str = "en"
    styles: str = ""
    chapters: List[ChapterSource] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BookData':
        if not isinstance(data, dict):
            raise BookDataError("BookData must be a JSON object")
        if not data.get('title'):
            raise BookDataError("BookData is missing a title")
        raw_chapters = data.get('chapters')
        if not isinstance(raw_chapters, list):
            raise BookDataError("BookData.chapters must be a list")

        chapters = []
        for index, raw in enumerate(raw_chapters):
            if not isinstance(raw, dict) or not isinstance(raw.get('html'), str):
                raise BookDataError("Chapter is missing its html", context={'chapter_index': index})
            chapters.append(ChapterSource(html=raw['html'], title=raw.get('title')))

        return cls(
            title=data['title'],
            author=data.get('author', ''),
            language=data.get('language', 'en'),
            styles=data.get('styles', ''),
            chapters=chapters,
        )


@dataclass
class TranslationResult:
    """One completed segment, as recorded by the checkpoint manager"""
    node_address: str
    chapter_number: int
    source_text: str
    translated_text: str
    target_language: str = ''
    checkpoint_time: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def key(self) -> tuple:
        return (self.chapter_number, self.node_address)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TranslationResult':
        return cls(
            node_address=data['node_address'],
            chapter_number=int(data['chapter_number']),
            source_text=data['source_text'],
            translated_text=data['translated_text'],
            target_language=data.get('target_language', ''),
            checkpoint_time=data.get('checkpoint_time') or datetime.now().isoformat(),
        )


class JobStatus(Enum):
    """Lifecycle of a resumable translation job"""
    PENDING = "pending"
    EXTRACTING_GLOSSARY = "extracting_glossary"
    TRANSLATING = "translating"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.ERROR)


@dataclass
class TranslationJob:
    """Durable cursor of a resumable translation job, one per book"""
    book_id: str
    source_language: str
    target_language: str
    total_chapters: int
    completed_chapters: int = 0
    current_chapter: int = 1
    current_item_offset: int = 0
    glossary_snapshot: Dict[str, str] = field(default_factory=dict)
    glossary_extracted: bool = False
    title_translated: bool = False
    status: JobStatus = JobStatus.PENDING
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['status'] = self.status.value
        return data
