"""
Document extraction

Turns BookData (chapter HTML as delivered by ingestion) into a parsed Book
whose chapters carry addressable TextNodes.

Components:
    - extractor: recursive block walk and address assignment
    - tag_classifier: block / skipped / heading tag sets
    - source_loader: BookData JSON reader
"""

from .extractor import extract_chapter, extract_book, collect_text_nodes
from .tag_classifier import TagClassifier
from .source_loader import load_book_data

__all__ = [
    'extract_chapter',
    'extract_book',
    'collect_text_nodes',
    'TagClassifier',
    'load_book_data',
]
