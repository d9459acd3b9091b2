"""HTML tag classification.

This module decides which elements are block-level content units, which
subtrees are skipped entirely, and which tags carry chapter titles.
"""

from typing import Any


class TagClassifier:
    """Classifies HTML tags by type.

    Tag names are normalized before lookup: namespaces such as
    ``{http://www.w3.org/1999/xhtml}p`` are stripped and names lower-cased,
    so the same classifier works for HTML and XHTML trees.
    """

    BLOCK_TAGS = frozenset({
        'p', 'div', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6',
        'li', 'blockquote', 'pre', 'td', 'th', 'dt', 'dd',
        'caption', 'figcaption', 'article', 'section',
    })

    SKIP_TAGS = frozenset({'script', 'style', 'noscript', 'head', 'meta', 'link'})

    TITLE_HEADINGS = ('h1', 'h2', 'h3')

    @staticmethod
    def normalize(tag: Any) -> str:
        """Return the bare lower-case tag name, or '' for comments and PIs.

        lxml exposes comments and processing instructions with a callable
        ``tag`` rather than a string.
        """
        if not isinstance(tag, str):
            return ''
        if tag.startswith('{'):
            tag = tag.split('}', 1)[1]
        return tag.lower()

    def is_block(self, tag: Any) -> bool:
        return self.normalize(tag) in self.BLOCK_TAGS

    def is_skipped(self, tag: Any) -> bool:
        return self.normalize(tag) in self.SKIP_TAGS

    def is_title_heading(self, tag: Any) -> bool:
        return self.normalize(tag) in self.TITLE_HEADINGS
