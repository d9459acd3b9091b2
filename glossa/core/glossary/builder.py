"""
Glossary extraction pass.

One request over a stratified sample of the book asks the model for a JSON
map of proper nouns to canonical renderings. The result is merged under the
entries already in the store, so terms fixed by a person or an earlier run
are never overwritten.
"""

import json
import logging
import re
from typing import Dict, List, Optional

from glossa.config import (
    GLOSSARY_SAMPLE_HEAD,
    GLOSSARY_SAMPLE_MIDDLE,
    GLOSSARY_SAMPLE_TAIL,
    GLOSSARY_TEMPERATURE,
)
from glossa.core.events import EventBus, EventType
from glossa.core.exceptions import LLMError, RetryExhaustedError
from glossa.core.llm.base import LLMProvider
from prompts.prompts import generate_glossary_prompt
from .enforcer import ConsistencyEnforcer
from .store import GlossaryStore

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r'^\s*```[a-zA-Z]*\s*\n?(.*?)\n?\s*```\s*$', re.DOTALL)


class GlossaryBuilder:
    """Builds the book-wide glossary before segment translation starts"""

    def __init__(self, llm: LLMProvider, store: GlossaryStore,
                 enforcer: Optional[ConsistencyEnforcer] = None,
                 event_bus: Optional[EventBus] = None,
                 temperature: float = GLOSSARY_TEMPERATURE):
        self.llm = llm
        self.store = store
        self.enforcer = enforcer
        self.event_bus = event_bus
        self.temperature = temperature

    @staticmethod
    def sample_segments(texts: List[str]) -> List[str]:
        """
        Pick the head, middle and tail of the book.

        Indices are de-duplicated and kept in reading order, so a short book
        is sent whole and nothing is sent twice.
        """
        n = len(texts)
        indices = list(range(min(GLOSSARY_SAMPLE_HEAD, n)))

        if n > 200:
            start = n // 2 - GLOSSARY_SAMPLE_MIDDLE // 2
            indices.extend(range(start, start + GLOSSARY_SAMPLE_MIDDLE))
        if n > 150:
            indices.extend(range(n - GLOSSARY_SAMPLE_TAIL, n))

        seen = set()
        sample = []
        for index in indices:
            if index not in seen:
                seen.add(index)
                sample.append(texts[index])
        return sample

    @staticmethod
    def parse_response(raw: str) -> Optional[Dict[str, str]]:
        """
        Parse the model's glossary answer.

        Returns:
            The term map, or None when the answer is not a JSON object
        """
        if not raw:
            return None
        text = raw.strip()
        match = _FENCE_RE.match(text)
        if match:
            text = match.group(1).strip()

        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            return None
        if not isinstance(data, dict):
            return None

        entries = {}
        for term, translation in data.items():
            if isinstance(translation, str) and str(term).strip() and translation.strip():
                entries[str(term).strip()] = translation.strip()
        return entries

    async def build(self, texts: List[str], source_language: str,
                    target_language: str) -> Dict[str, str]:
        """
        Run the extraction pass and merge its result into the store.

        Failures of this pass are never fatal: the existing glossary is
        returned unchanged and a warning is logged.

        Returns:
            The merged glossary
        """
        existing = await self.store.get_all_entries()

        if not self.llm.is_configured:
            logger.warning("No API key configured, skipping glossary extraction")
            return self._finish(existing, added=0)

        sample = self.sample_segments([t for t in texts if t and t.strip()])
        if not sample:
            return self._finish(existing, added=0)

        prompt = generate_glossary_prompt('\n\n'.join(sample), source_language, target_language)

        try:
            response = await self.llm.generate(prompt.user, system_prompt=prompt.system,
                                               temperature=self.temperature)
        except (LLMError, RetryExhaustedError) as e:
            logger.warning(f"Glossary extraction request failed, keeping existing glossary: {e}")
            return self._finish(existing, added=0)

        proposed = self.parse_response(response.content)
        if proposed is None:
            logger.warning("Glossary extraction returned malformed JSON, keeping existing glossary")
            return self._finish(existing, added=0)

        merged = dict(existing)
        added = 0
        for term, translation in proposed.items():
            current = merged.get(term)
            if current is None:
                merged[term] = translation
                await self.store.set(term, translation)
                added += 1
            elif current != translation and self.enforcer is not None:
                self.enforcer.register_variant(term, translation)

        logger.info(f"Glossary extraction proposed {len(proposed)} terms, {added} new "
                    f"({len(merged)} total)")
        return self._finish(merged, added=added)

    def _finish(self, glossary: Dict[str, str], added: int) -> Dict[str, str]:
        if self.enforcer is not None:
            self.enforcer.load(glossary)
        if self.event_bus is not None:
            self.event_bus.emit(EventType.GLOSSARY_BUILT, source="glossary_builder",
                                total=len(glossary), added=added)
        return glossary
