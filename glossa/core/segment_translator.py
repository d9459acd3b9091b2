"""
Translation of a single text unit.

The prompt carries the glossary entries relevant to this segment, sorted
longest term first so that "Mr. Whymper" is seen before "Whymper", plus the
neighbouring context. The model may read and extend the glossary through
tools. The raw answer is cleaned and passed through the consistency
enforcer before it is returned.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from glossa.config import (INPUT_TAG_IN, INPUT_TAG_OUT, CONTEXT_TAG_IN,
                           CONTEXT_TAG_OUT, language_name)
from glossa.core.events import EventBus
from glossa.core.glossary.enforcer import ConsistencyEnforcer
from glossa.core.glossary.store import GlossaryStore
from glossa.core.glossary.tools import create_glossary_tools
from glossa.core.llm.base import LLMProvider
from glossa.core.models import ParagraphType
from prompts.prompts import generate_translation_prompt, generate_title_prompt

logger = logging.getLogger(__name__)

MOCK_PREVIEW_LENGTH = 50

_STRAY_TAGS_RE = re.compile(
    '|'.join(re.escape(tag) for tag in (INPUT_TAG_IN, INPUT_TAG_OUT, CONTEXT_TAG_IN, CONTEXT_TAG_OUT))
)


def mock_translation(text: str, target_language: str) -> str:
    """Placeholder returned when no API credential is configured"""
    return f"[{language_name(target_language)}: {text[:MOCK_PREVIEW_LENGTH]}...]"


def clean_translation(raw: str) -> str:
    """Strip prompt tags the model echoed back"""
    return _STRAY_TAGS_RE.sub('', raw or '').strip()


def select_relevant_entries(text: str, glossary: Dict[str, str]) -> List[Tuple[str, str]]:
    """
    Glossary entries whose term occurs in ``text`` (case-insensitive).

    Returns:
        (term, translation) pairs, longest term first
    """
    lowered = text.lower()
    relevant = [(term, translation) for term, translation in glossary.items()
                if term and term.lower() in lowered]
    return sorted(relevant, key=lambda entry: len(entry[0]), reverse=True)


class SegmentTranslator:
    """Translates one segment at a time against a shared glossary"""

    def __init__(self, llm: LLMProvider, store: GlossaryStore,
                 enforcer: ConsistencyEnforcer,
                 source_language: str, target_language: str,
                 use_tools: bool = True,
                 event_bus: Optional[EventBus] = None):
        self.llm = llm
        self.store = store
        self.enforcer = enforcer
        self.source_language = source_language
        self.target_language = target_language
        self.tools = create_glossary_tools(store, enforcer, event_bus) if use_tools else None

    @property
    def mock_mode(self) -> bool:
        return not self.llm.is_configured

    async def relevant_glossary(self, text: str) -> List[Tuple[str, str]]:
        return select_relevant_entries(text, await self.store.get_all_entries())

    async def translate(self, text: str, context: str = "",
                        paragraph_type: ParagraphType = ParagraphType.NORMAL) -> str:
        """
        Translate one segment.

        Args:
            text: Plain text of the segment
            context: Formatted neighbouring segments
            paragraph_type: Adds a one-line hint to the prompt

        Returns:
            Enforced translation

        Raises:
            TranslationError: On any LLM failure (never swallowed here)
        """
        if not text or not text.strip():
            return text

        if self.mock_mode:
            return mock_translation(text, self.target_language)

        prompt = generate_translation_prompt(
            text,
            source_language=self.source_language,
            target_language=self.target_language,
            glossary_entries=await self.relevant_glossary(text),
            context=context,
            paragraph_type=paragraph_type,
            tools_enabled=self.tools is not None,
        )
        response = await self.llm.generate(prompt.user, system_prompt=prompt.system, tools=self.tools)
        translated = clean_translation(response.content)

        if response.tool_rounds:
            logger.debug(f"Segment used {response.tool_rounds} tool round(s)")
        return self.enforcer.enforce(text, translated)

    async def translate_title(self, title: str) -> str:
        """Translate a book or chapter title, without tools or context"""
        if not title or not title.strip():
            return title

        if self.mock_mode:
            return mock_translation(title, self.target_language)

        prompt = generate_title_prompt(
            title,
            source_language=self.source_language,
            target_language=self.target_language,
            glossary_entries=await self.relevant_glossary(title),
        )
        response = await self.llm.generate(prompt.user, system_prompt=prompt.system)
        return self.enforcer.enforce(title, clean_translation(response.content))
