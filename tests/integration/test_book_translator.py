"""Integration tests for in-process whole-book translation."""

import pytest

from glossa.config import TranslationConfig
from glossa.core.book_translator import BookTranslator, failure_placeholder
from glossa.core.document import extract_book
from glossa.core.events import EventBus, EventType
from glossa.core.exceptions import LLMServerError, RetryExhaustedError
from glossa.core.glossary import InMemoryGlossaryStore, SAVE_TOOL
from glossa.core.models import BookData, ChapterSource, TranslationResult
from glossa.persistence import CheckpointManager


def make_config(**overrides):
    values = dict(source_language="en", target_language="zh", api_key="sk-test",
                  delay_between_items=0, chapter_concurrency=2, item_concurrency=2)
    values.update(overrides)
    return TranslationConfig(**values)


def echo_handler(provider_cls, failures=None):
    failures = failures or {}

    def handler(messages, tools):
        if provider_cls.is_glossary_request(messages):
            return '{"Whymper": "温珀"}'
        text = provider_cls.segment_text(messages)
        if text in failures:
            return failures[text]
        return f"译:{text}"

    return handler


class TestBookTranslator:
    """Test glossary, chapters, checkpointing and output."""

    @pytest.mark.asyncio
    async def test_output_shape(self, small_book_data, scripted_provider, tmp_path):
        progress = []
        translator = BookTranslator(
            scripted_provider(echo_handler(scripted_provider)), make_config(),
            checkpoint=CheckpointManager(str(tmp_path / "cp.jsonl")),
            on_progress=lambda done, total: progress.append((done, total)))

        output = await translator.translate_book(extract_book(small_book_data))

        assert output['title'] == "Animal Farm"
        assert output['translated_title'] == "译:Animal Farm"
        assert output['glossary'] == {"Whymper": "温珀"}
        assert [c['number'] for c in output['chapters']] == [1, 2, 3]
        assert output['chapters'][0]['translated_title'] == "译:Part 1"
        segment = output['chapters'][1]['segments'][0]
        assert segment == {
            'address': "/body[1]/p[1]",
            'order_index': 0,
            'source_text': "Whymper sold the wheat.",
            'source_markup': "Whymper sold the wheat.",
            'translated_text': "译:Whymper sold the wheat.",
        }
        assert progress[-1] == (6, 6)
        assert translator.checkpoint.get_completed_count() == 6

    @pytest.mark.asyncio
    async def test_checkpointed_segments_are_skipped(self, small_book_data, scripted_provider, tmp_path):
        path = str(tmp_path / "cp.jsonl")
        checkpoint = CheckpointManager(path)
        await checkpoint.save(TranslationResult(
            node_address="/body[1]/p[1]", chapter_number=1,
            source_text="Mr. Whymper came to the farm.", translated_text="温珀先生来到农场。",
            target_language="zh"))
        llm = scripted_provider(echo_handler(scripted_provider))

        output = await BookTranslator(llm, make_config(), checkpoint=CheckpointManager(path)).translate_book(
            extract_book(small_book_data))

        sent = [llm.segment_text(call['messages']) for call in llm.calls]
        assert "Mr. Whymper came to the farm." not in sent
        assert output['chapters'][0]['segments'][0]['translated_text'] == "温珀先生来到农场。"

    @pytest.mark.asyncio
    async def test_failure_aborts_by_default(self, small_book_data, scripted_provider):
        error = RetryExhaustedError("exhausted", original_error=LLMServerError("busy", 503), attempts=4)
        llm = scripted_provider(echo_handler(scripted_provider, {"Napoleon was pleased.": error}))

        with pytest.raises(RetryExhaustedError):
            await BookTranslator(llm, make_config()).translate_book(extract_book(small_book_data))

    @pytest.mark.asyncio
    async def test_skip_failures_writes_marker(self, small_book_data, scripted_provider):
        error = RetryExhaustedError("exhausted", original_error=LLMServerError("busy", 503), attempts=4)
        llm = scripted_provider(echo_handler(scripted_provider, {"Napoleon was pleased.": error}))
        bus = EventBus()
        bus.enable_history()

        output = await BookTranslator(llm, make_config(), event_bus=bus, skip_failures=True).translate_book(
            extract_book(small_book_data))

        segment = output['chapters'][1]['segments'][1]
        assert segment['translated_text'] == failure_placeholder("Napoleon was pleased.")
        assert segment['translated_text'] == "[Translation failed: Napoleon was pleased....]"
        assert len(bus.get_events_by_type(EventType.SEGMENT_FAILED)) == 1

    @pytest.mark.asyncio
    async def test_final_sweep_applies_changed_rendering(self, scripted_provider, tmp_path):
        """A rendering changed mid-run is applied to earlier segments."""
        book = extract_book(BookData(title="Animal Farm", chapters=[
            ChapterSource(html="<html><body><p>Boxer worked hard.</p></body></html>", title="One"),
            ChapterSource(html="<html><body><p>Boxer fell.</p></body></html>", title="Two"),
        ]))

        async def handler(messages, tools):
            if scripted_provider.is_glossary_request(messages):
                return "{}"
            text = scripted_provider.segment_text(messages)
            if text == "Boxer worked hard.":
                return "博克瑟努力工作。"
            if text == "Boxer fell.":
                await tools.dispatch(SAVE_TOOL, {"term": "Boxer", "translation": "拳击手"})
                return "拳击手倒下了。"
            return text

        bus = EventBus()
        bus.enable_history()
        checkpoint = CheckpointManager(str(tmp_path / "cp.jsonl"))
        translator = BookTranslator(
            scripted_provider(handler), make_config(chapter_concurrency=1, item_concurrency=1),
            store=InMemoryGlossaryStore({"Boxer": "博克瑟"}), checkpoint=checkpoint, event_bus=bus)

        output = await translator.translate_book(book)

        assert output['glossary'] == {"Boxer": "拳击手"}
        assert output['chapters'][0]['segments'][0]['translated_text'] == "拳击手努力工作。"
        assert checkpoint.get(1, "/body[1]/p[1]").translated_text == "拳击手努力工作。"
        fixed = bus.get_events_by_type(EventType.CONSISTENCY_FIXED)
        assert fixed[0].data['segments'] == 1

    @pytest.mark.asyncio
    async def test_mock_mode(self, small_book_data, scripted_provider):
        llm = scripted_provider(configured=False)

        output = await BookTranslator(llm, make_config()).translate_book(extract_book(small_book_data))

        assert output['chapters'][2]['segments'][0]['translated_text'] == "[Chinese: The windmill was rebuilt....]"
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_checkpoint_of_another_book_is_not_reused(self, scripted_provider, tmp_path):
        """Records for the same address but other source text or language are retranslated."""
        path = str(tmp_path / "cp.jsonl")

        def one_paragraph(text):
            return extract_book(BookData(title="T", chapters=[
                ChapterSource(html=f"<html><body><p>{text}</p></body></html>", title="One")]))

        await BookTranslator(scripted_provider(echo_handler(scripted_provider)), make_config(),
                             checkpoint=CheckpointManager(path)).translate_book(one_paragraph("Alpha paragraph"))

        other_book = await BookTranslator(
            scripted_provider(echo_handler(scripted_provider)), make_config(target_language="fr"),
            checkpoint=CheckpointManager(path)).translate_book(one_paragraph("Beta paragraph"))
        same_book_other_language = await BookTranslator(
            scripted_provider(echo_handler(scripted_provider)), make_config(target_language="fr"),
            checkpoint=CheckpointManager(path)).translate_book(one_paragraph("Alpha paragraph"))

        assert other_book['chapters'][0]['segments'][0]['translated_text'] == "译:Beta paragraph"
        assert same_book_other_language['chapters'][0]['segments'][0]['translated_text'] == "译:Alpha paragraph"

    @pytest.mark.asyncio
    async def test_mock_translations_are_not_checkpointed(self, small_book_data, scripted_provider, tmp_path):
        """A later run with credentials translates everything the mock run produced."""
        path = str(tmp_path / "cp.jsonl")
        book = extract_book(small_book_data)

        await BookTranslator(scripted_provider(configured=False), make_config(),
                             checkpoint=CheckpointManager(path)).translate_book(book)
        assert CheckpointManager(path).get_completed_count() == 0

        llm = scripted_provider(echo_handler(scripted_provider))
        output = await BookTranslator(llm, make_config(), checkpoint=CheckpointManager(path)).translate_book(book)

        assert output['chapters'][0]['segments'][0]['translated_text'] == "译:Mr. Whymper came to the farm."
