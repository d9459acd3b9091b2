"""
Prompts module for Glossa
"""
from prompts.prompts import (
    PromptPair,
    format_glossary_entries,
    generate_translation_prompt,
    generate_title_prompt,
    generate_glossary_prompt,
)

__all__ = [
    "PromptPair",
    "format_glossary_entries",
    "generate_translation_prompt",
    "generate_title_prompt",
    "generate_glossary_prompt",
]
