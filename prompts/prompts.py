from typing import Dict, List, NamedTuple, Optional, Tuple

from glossa.config import (INPUT_TAG_IN, INPUT_TAG_OUT, CONTEXT_TAG_IN,
                           CONTEXT_TAG_OUT, language_name)
from glossa.core.models import ParagraphType


class PromptPair(NamedTuple):
    """A pair of system and user prompts for LLM translation."""
    system: str
    user: str


# ============================================================================
# SHARED PROMPT SECTIONS
# ============================================================================

PARAGRAPH_TYPE_HINTS = {
    ParagraphType.POEM: "Note: the following is poetry or lyrics. Preserve rhythm and flow.",
    ParagraphType.CHAPTER: "Note: the following is a chapter heading.",
    ParagraphType.TITLE: "Note: the following is a title. Keep it concise.",
}

TOOLS_SECTION = """# GLOSSARY TOOLS

You can call `lookup_glossary_term` to check how a proper noun was rendered elsewhere in the book.
When you meet a proper noun that is neither in the glossary below nor known to the lookup tool,
call `save_glossary_term` once with your chosen rendering so later passages stay consistent."""


def format_glossary_entries(entries: List[Tuple[str, str]]) -> str:
    """One ``"term" → "translation"`` line per entry, in the given order"""
    return '\n'.join(f'"{term}" → "{translation}"' for term, translation in entries)


# ============================================================================
# TRANSLATION PROMPT FUNCTIONS
# ============================================================================

def generate_translation_prompt(
    text: str,
    source_language: str = "en",
    target_language: str = "zh",
    glossary_entries: Optional[List[Tuple[str, str]]] = None,
    context: str = "",
    paragraph_type: ParagraphType = ParagraphType.NORMAL,
    tools_enabled: bool = False
) -> PromptPair:
    """
    Generate the prompt for one segment.

    Args:
        text: The segment to translate
        source_language: Source language code or name
        target_language: Target language code or name
        glossary_entries: Relevant glossary entries, already ordered longest term first
        context: Formatted neighbouring segments
        paragraph_type: Kind of segment, adds a one-line hint
        tools_enabled: Whether the glossary tools are offered to the model

    Returns:
        PromptPair: A named tuple with 'system' and 'user' prompts
    """
    source = language_name(source_language)
    target = language_name(target_language)

    tools_section = f"\n\n{TOOLS_SECTION}" if tools_enabled else ""

    # SYSTEM PROMPT - Role and instructions (stable across requests)
    system_prompt = f"""You are a professional literary translator. Translate {source} text into fluent, natural {target}.

# RULES

1. [MOST IMPORTANT] Proper nouns listed in the glossary MUST be translated exactly as given. Never use another rendering.
2. Translate EXACTLY what is provided. Do not add summaries, explanations, notes or continuations.
3. Keep the original style, tone, paragraph breaks and emphasis.
4. Use the context only to understand the text. Never translate the context.
5. If the input is a title or a short phrase, translate it as such.
6. Do NOT wrap the translation in quotes unless the source has them.

Output ONLY the {target} translation.{tools_section}"""

    sections = []

    if glossary_entries:
        sections.append(f"""# GLOSSARY (MUST STRICTLY FOLLOW)

{format_glossary_entries(glossary_entries)}""")

    if context and context.strip():
        sections.append(f"""# CONTEXT (do not translate)

{CONTEXT_TAG_IN}
{context.strip()}
{CONTEXT_TAG_OUT}""")

    hint = PARAGRAPH_TYPE_HINTS.get(paragraph_type)
    if hint:
        sections.append(hint)

    sections.append(f"""# TEXT TO TRANSLATE INTO {target.upper()}

{INPUT_TAG_IN}{text}{INPUT_TAG_OUT}""")

    return PromptPair(system=system_prompt.strip(), user='\n\n'.join(sections).strip())


def generate_title_prompt(title: str, source_language: str = "en",
                          target_language: str = "zh",
                          glossary_entries: Optional[List[Tuple[str, str]]] = None) -> PromptPair:
    """Prompt for a book or chapter title"""
    return generate_translation_prompt(
        title,
        source_language=source_language,
        target_language=target_language,
        glossary_entries=glossary_entries,
        paragraph_type=ParagraphType.TITLE,
    )


# ============================================================================
# GLOSSARY EXTRACTION PROMPT
# ============================================================================

GLOSSARY_EXAMPLES: Dict[str, str] = {
    "zh": '{"Whymper": "温珀", "Mr. Whymper": "温珀先生", "Animal Farm": "动物农场"}',
    "ja": '{"Whymper": "ウィンパー", "Mr. Whymper": "ウィンパー氏", "Animal Farm": "動物農場"}',
    "ko": '{"Whymper": "윔퍼", "Mr. Whymper": "윔퍼 씨", "Animal Farm": "동물 농장"}',
    "fr": '{"Whymper": "Whymper", "Mr. Whymper": "M. Whymper", "Animal Farm": "La Ferme des animaux"}',
    "es": '{"Whymper": "Whymper", "Mr. Whymper": "el señor Whymper", "Animal Farm": "Rebelión en la granja"}',
    "de": '{"Whymper": "Whymper", "Mr. Whymper": "Mr. Whymper", "Animal Farm": "Farm der Tiere"}',
    "ru": '{"Whymper": "Уимпер", "Mr. Whymper": "мистер Уимпер", "Animal Farm": "Скотный двор"}',
}


def generate_glossary_prompt(sample_text: str, source_language: str = "en",
                             target_language: str = "zh") -> PromptPair:
    """
    Prompt asking for a JSON glossary of the proper nouns in a text sample.
    """
    source = language_name(source_language)
    target = language_name(target_language)
    example = GLOSSARY_EXAMPLES.get(target_language, GLOSSARY_EXAMPLES["zh"])

    system_prompt = f"""You are a terminology specialist preparing a {source} to {target} book translation.

Extract every proper noun from the text: names of people, places, organisations, titles of works and invented terms.
For each one give a single canonical {target} rendering.

# RULES

1. Include common variants of a name as separate keys, for example with and without a title or honorific.
2. Variants that share a root MUST have mutually consistent renderings: the rendering of "Mr. X" must extend the rendering of "X".
3. Use established translations where they exist.
4. Do not include common nouns.

# OUTPUT FORMAT

Return ONLY a JSON object mapping each {source} term to its {target} rendering, for example:
{example}"""

    user_prompt = f"""# TEXT

{sample_text}

Return the JSON object now:"""

    return PromptPair(system=system_prompt.strip(), user=user_prompt.strip())
