"""Unit tests for prompt generation."""

from glossa.core.models import ParagraphType
from prompts import (
    format_glossary_entries,
    generate_glossary_prompt,
    generate_title_prompt,
    generate_translation_prompt,
)


class TestTranslationPrompt:
    """Test the segment prompt."""

    def test_minimal_prompt(self):
        prompt = generate_translation_prompt("Whymper came.", "en", "zh")

        assert "professional literary translator" in prompt.system
        assert "Output ONLY the Chinese translation." in prompt.system
        assert "GLOSSARY" not in prompt.user
        assert "CONTEXT" not in prompt.user
        assert prompt.user == "# TEXT TO TRANSLATE INTO CHINESE\n\n<translate>Whymper came.</translate>"

    def test_sections_in_order(self):
        prompt = generate_translation_prompt(
            "Mr. Whymper came.", "en", "zh",
            glossary_entries=[("Mr. Whymper", "温珀先生"), ("Whymper", "温珀")],
            context="### Previous:\n\nIt rained.",
            paragraph_type=ParagraphType.CHAPTER,
        )

        glossary = prompt.user.index("# GLOSSARY (MUST STRICTLY FOLLOW)")
        context = prompt.user.index("# CONTEXT (do not translate)")
        hint = prompt.user.index("chapter heading")
        text = prompt.user.index("# TEXT TO TRANSLATE")
        assert glossary < context < hint < text

    def test_tools_section(self):
        with_tools = generate_translation_prompt("x", tools_enabled=True)
        without_tools = generate_translation_prompt("x", tools_enabled=False)

        assert "lookup_glossary_term" in with_tools.system
        assert "lookup_glossary_term" not in without_tools.system

    def test_glossary_lines(self):
        assert format_glossary_entries([("Whymper", "温珀"), ("Boxer", "拳击手")]) == \
            '"Whymper" → "温珀"\n"Boxer" → "拳击手"'

    def test_title_prompt(self):
        prompt = generate_title_prompt("Animal Farm", "en", "fr")

        assert "title" in prompt.user
        assert "<translate>Animal Farm</translate>" in prompt.user
        assert "French" in prompt.system


class TestGlossaryPrompt:
    """Test the glossary extraction prompt."""

    def test_example_for_target_language(self):
        prompt = generate_glossary_prompt("Whymper came.", "en", "ja")

        assert "ウィンパー" in prompt.system
        assert "JSON object" in prompt.system
        assert "Whymper came." in prompt.user

    def test_unknown_target_falls_back(self):
        prompt = generate_glossary_prompt("Whymper came.", "en", "pt")

        assert "温珀" in prompt.system
