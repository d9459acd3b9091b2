"""
Glossary tools exposed to the model during segment translation.
"""

import logging
from typing import Optional

from glossa.core.events import EventBus, EventType
from glossa.core.llm.tools import Tool, ToolRegistry
from .enforcer import ConsistencyEnforcer
from .store import GlossaryStore

logger = logging.getLogger(__name__)

LOOKUP_TOOL = "lookup_glossary_term"
SAVE_TOOL = "save_glossary_term"
NOT_FOUND = "NOT_FOUND"


def create_glossary_tools(store: GlossaryStore,
                          enforcer: Optional[ConsistencyEnforcer] = None,
                          event_bus: Optional[EventBus] = None) -> ToolRegistry:
    """
    Build the read/write tools backed by a glossary store.

    Writes go to the store and, when given, to the enforcer, so later
    segments in the same run are enforced against the new rendering.
    """

    async def lookup(term: str) -> str:
        value = await store.get(term)
        return value if value is not None else NOT_FOUND

    async def save(term: str, translation: str) -> str:
        term = term.strip()
        translation = translation.strip()
        if not term or not translation:
            return "Error: term and translation must be non-empty"
        await store.set(term, translation)
        if enforcer is not None:
            enforcer.set_entry(term, translation)
        if event_bus is not None:
            event_bus.emit(EventType.GLOSSARY_TERM_SAVED, source="glossary_tools",
                           term=term, translation=translation)
        logger.debug(f"Model saved glossary term '{term}' -> '{translation}'")
        return "OK"

    return ToolRegistry([
        Tool(
            name=LOOKUP_TOOL,
            description="Look up the canonical translation of a proper noun in the book glossary. "
                        f"Returns {NOT_FOUND} if the term is unknown.",
            handler=lookup,
            parameters={
                "type": "object",
                "properties": {
                    "term": {"type": "string", "description": "Source-language term"},
                },
                "required": ["term"],
            },
        ),
        Tool(
            name=SAVE_TOOL,
            description="Record the canonical translation of a proper noun that is not yet in the "
                        "glossary, so every later passage uses the same rendering.",
            handler=save,
            parameters={
                "type": "object",
                "properties": {
                    "term": {"type": "string", "description": "Source-language term"},
                    "translation": {"type": "string", "description": "Canonical target-language rendering"},
                },
                "required": ["term", "translation"],
            },
        ),
    ])
