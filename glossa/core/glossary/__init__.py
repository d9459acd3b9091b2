"""
Book glossary: storage, extraction, variant rules and consistency enforcement.
"""

from .store import GlossaryStore, InMemoryGlossaryStore, JsonFileGlossaryStore
from .variants import VariantRules, VARIANT_RULES, generate_variants
from .enforcer import ConsistencyEnforcer
from .builder import GlossaryBuilder
from .tools import create_glossary_tools, LOOKUP_TOOL, SAVE_TOOL, NOT_FOUND

__all__ = [
    'GlossaryStore',
    'InMemoryGlossaryStore',
    'JsonFileGlossaryStore',
    'VariantRules',
    'VARIANT_RULES',
    'generate_variants',
    'ConsistencyEnforcer',
    'GlossaryBuilder',
    'create_glossary_tools',
    'LOOKUP_TOOL',
    'SAVE_TOOL',
    'NOT_FOUND',
]
