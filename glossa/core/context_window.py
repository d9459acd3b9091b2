"""
Context window around a segment.

Given a position in the linear list of a chapter's segments, the builder
returns a bounded slice of the preceding and following segments. Preceding
segments carry their translation when one already exists; following ones
are always source text. With parallel item workers most neighbours are not
yet translated, so the window usually degrades to source-only context.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import tiktoken

from glossa.config import CONTEXT_BEFORE, CONTEXT_AFTER, CONTEXT_MAX_TOKENS


@dataclass
class ContextItem:
    """One neighbouring segment"""
    index: int
    original: str
    translated: Optional[str] = None


@dataclass
class ContextWindow:
    """Neighbours of a single segment, in reading order"""
    before: List[ContextItem] = field(default_factory=list)
    after: List[ContextItem] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.before and not self.after

    def format(self) -> str:
        """Render the window for inclusion in a prompt"""
        parts = []
        if self.before:
            parts.append("### Previous:")
            for item in self.before:
                if item.translated:
                    parts.append(f"{item.original}\n→ {item.translated}")
                else:
                    parts.append(item.original)
        if self.after:
            parts.append("### Following:")
            parts.extend(item.original for item in self.after)
        return '\n\n'.join(parts)


class ContextWindowBuilder:
    """
    Builds bounded context windows over a list of segment texts.

    When ``max_tokens`` is positive the window is trimmed to that budget,
    dropping the items farthest from the segment first.
    """

    def __init__(self, texts: List[str], before: int = CONTEXT_BEFORE,
                 after: int = CONTEXT_AFTER, max_tokens: int = CONTEXT_MAX_TOKENS,
                 token_counter: Optional[Callable[[str], int]] = None):
        if before < 0 or after < 0:
            raise ValueError("Context sizes cannot be negative")
        self.texts = texts
        self.before = before
        self.after = after
        self.max_tokens = max_tokens
        self._token_counter = token_counter
        self._encoder = None

    def count_tokens(self, text: str) -> int:
        """Number of tokens in ``text`` (cl100k_base unless a counter was given)"""
        if not text:
            return 0
        if self._token_counter is not None:
            return self._token_counter(text)
        if self._encoder is None:
            self._encoder = tiktoken.get_encoding("cl100k_base")
        return len(self._encoder.encode(text))

    def build(self, index: int, translations: Optional[Dict[int, str]] = None) -> ContextWindow:
        """
        Window for the segment at ``index``.

        Args:
            index: Position of the segment being translated
            translations: Already finished translations by position

        Returns:
            ContextWindow, empty when the segment has no neighbours
        """
        if index < 0 or index >= len(self.texts):
            raise IndexError(f"Segment index {index} out of range (0-{len(self.texts) - 1})")

        translations = translations or {}
        window = ContextWindow(
            before=[ContextItem(i, self.texts[i], translations.get(i))
                    for i in range(max(0, index - self.before), index)],
            after=[ContextItem(i, self.texts[i])
                   for i in range(index + 1, min(len(self.texts), index + 1 + self.after))],
        )

        if self.max_tokens > 0:
            self._trim(window, index)
        return window

    def _item_tokens(self, item: ContextItem) -> int:
        return self.count_tokens(item.original) + self.count_tokens(item.translated or "")

    def _trim(self, window: ContextWindow, index: int) -> None:
        total = sum(self._item_tokens(item) for item in window.before + window.after)
        while total > self.max_tokens and not window.is_empty:
            farthest = max(window.before + window.after, key=lambda item: abs(item.index - index))
            if farthest in window.before:
                window.before.remove(farthest)
            else:
                window.after.remove(farthest)
            total -= self._item_tokens(farthest)

    def format(self, index: int, translations: Optional[Dict[int, str]] = None) -> str:
        """Shortcut for ``build(index, translations).format()``"""
        return self.build(index, translations).format()
