"""
Text node extraction for chapter HTML

This module walks a chapter's element tree and produces one TextNode per
leaf block-level element. A block that contains further blocks is not a
unit itself; the walk descends into it instead, so container text is never
counted twice.

Each node is addressed by the path of ``tag[index]`` segments from the
chapter body down to the element, where ``index`` is the 1-based position
among siblings with the same tag. The address depends only on the source
markup, so re-extracting unchanged HTML yields identical addresses.
"""
import html
import logging
import re
from typing import List, Optional

from lxml import etree
import lxml.html

from glossa.config import MIN_TEXT_LENGTH, SHORT_TITLE_BLOCK_LENGTH, MAX_TITLE_BLOCKS
from glossa.core.exceptions import HtmlParsingError
from glossa.core.models import TextNode, Chapter, Book, BookData
from .tag_classifier import TagClassifier

logger = logging.getLogger(__name__)

_XML_DECLARATION_RE = re.compile(r'^\s*<\?xml[^>]*\?>', re.IGNORECASE)
_WHITESPACE_RE = re.compile(r'\s+')

_classifier = TagClassifier()


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(' ', text).strip()


def parse_chapter_html(markup: str) -> Optional[etree._Element]:
    """
    Parse chapter markup into an lxml tree.

    Returns:
        The document root, or None when the markup has no content
    """
    # lxml refuses unicode input that carries an encoding declaration
    cleaned = _XML_DECLARATION_RE.sub('', markup or '', count=1)
    if not cleaned.strip():
        return None
    try:
        return lxml.html.document_fromstring(cleaned)
    except etree.ParserError:
        return None
    except (ValueError, etree.LxmlError) as e:
        raise HtmlParsingError("Failed to parse chapter HTML", original_error=e,
                               content_preview=cleaned)


def _plain_text(element: etree._Element) -> str:
    """Concatenated text of an element, excluding skipped subtrees"""
    parts = [element.text or '']
    for child in element:
        if not _classifier.is_skipped(child.tag) and isinstance(child.tag, str):
            parts.append(_plain_text(child))
        parts.append(child.tail or '')
    return ''.join(parts)


def _inner_markup(element: etree._Element) -> str:
    """Serialized content of an element without its own start and end tags"""
    parts = [html.escape(element.text or '', quote=False)]
    for child in element:
        parts.append(etree.tostring(child, encoding='unicode', method='html', with_tail=True))
    return ''.join(parts)


def _has_block_descendant(element: etree._Element) -> bool:
    return any(_classifier.is_block(d.tag) for d in element.iterdescendants())


def collect_text_nodes(element: etree._Element, path: str, nodes: List[TextNode]) -> None:
    """
    Recursively collect leaf block units below ``element``

    Args:
        element: lxml element whose children are visited
        path: Address of ``element`` itself
        nodes: List to append TextNodes to (modified in place)
    """
    sibling_counts = {}

    for child in element:
        tag = _classifier.normalize(child.tag)
        if not tag:
            continue

        sibling_counts[tag] = sibling_counts.get(tag, 0) + 1
        if tag in _classifier.SKIP_TAGS:
            continue

        child_path = f"{path}/{tag}[{sibling_counts[tag]}]"

        if tag in _classifier.BLOCK_TAGS and not _has_block_descendant(child):
            text = collapse_whitespace(_plain_text(child))
            if len(text) < MIN_TEXT_LENGTH:
                continue
            nodes.append(TextNode(
                address=child_path,
                plain_text=text,
                inner_markup=_inner_markup(child).strip(),
                order_index=len(nodes),
                tag_name=tag,
                class_name=child.get('class', ''),
            ))
        else:
            collect_text_nodes(child, child_path, nodes)


def _find_body(root: etree._Element) -> etree._Element:
    for element in root.iter():
        if _classifier.normalize(element.tag) == 'body':
            return element
    return root


def _heading_title(root: etree._Element) -> Optional[str]:
    for element in root.iter():
        if _classifier.is_title_heading(element.tag):
            text = collapse_whitespace(_plain_text(element))
            if text:
                return text
    return None


def _document_title(root: etree._Element) -> Optional[str]:
    for element in root.iter():
        if _classifier.normalize(element.tag) == 'title':
            text = collapse_whitespace(element.text_content())
            if text:
                return text
    return None


def synthesize_title(nodes: List[TextNode]) -> Optional[str]:
    """
    Build a title from the short blocks that open a chapter.

    Scanning stops at the first block longer than SHORT_TITLE_BLOCK_LENGTH.
    """
    parts = []
    for node in nodes[:MAX_TITLE_BLOCKS]:
        if len(node.plain_text) > SHORT_TITLE_BLOCK_LENGTH:
            break
        parts.append(node.plain_text)
    return ' '.join(parts) if parts else None


def extract_chapter(markup: str, number: int, source_title: Optional[str] = None) -> Chapter:
    """
    Extract the text nodes and title of one chapter.

    Args:
        markup: Chapter HTML or XHTML
        number: Chapter ordinal (1-based)
        source_title: Title supplied by document ingestion, if any

    Returns:
        Chapter with nodes in reading order
    """
    root = parse_chapter_html(markup)
    nodes: List[TextNode] = []
    title = None

    if root is not None:
        collect_text_nodes(_find_body(root), '/body[1]', nodes)
        title = _heading_title(root)

    title = (title
             or (collapse_whitespace(source_title) if source_title else None)
             or (_document_title(root) if root is not None else None)
             or synthesize_title(nodes)
             or f"Chapter {number}")

    return Chapter(number=number, title=title, original_title=title,
                   raw_markup=markup, nodes=nodes)


def extract_book(book_data: BookData) -> Book:
    """
    Extract every chapter of a book.

    Chapters without any text node are dropped and the remaining chapters
    are numbered contiguously from 1.
    """
    chapters: List[Chapter] = []
    for source in book_data.chapters:
        chapter = extract_chapter(source.html, len(chapters) + 1, source.title)
        if not chapter.nodes:
            logger.debug(f"Skipping chapter without text nodes: {chapter.title}")
            continue
        chapters.append(chapter)

    logger.info(f"Extracted {len(chapters)} chapters, "
                f"{sum(len(c.nodes) for c in chapters)} text nodes from '{book_data.title}'")

    return Book(title=book_data.title, author=book_data.author, language=book_data.language,
                styles=book_data.styles, chapters=chapters)
