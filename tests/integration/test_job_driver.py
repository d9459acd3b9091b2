"""Integration tests for the resumable job state machine."""

import pytest

from glossa.config import PENDING_PLACEHOLDER, TranslationConfig
from glossa.core.events import EventBus, EventType
from glossa.core.exceptions import (
    CheckpointSaveError,
    LLMAuthenticationError,
    LLMServerError,
    RetryExhaustedError,
)
from glossa.core.glossary import SAVE_TOOL
from glossa.core.job_driver import TranslationJobDriver, import_book
from glossa.core.models import JobStatus

GLOSSARY_ANSWER = '{"Whymper": "温珀", "Mr. Whymper": "温珀先生"}'

TRANSLATIONS = {
    "Mr. Whymper came to the farm.": "温珀先生来到农场。",
    "The animals watched him.": "动物们看着他。",
    "Whymper sold the wheat.": "温普卖掉了小麦。",
    "Napoleon was pleased.": "拿破仑很高兴。",
    "The windmill was rebuilt.": "风车重建了。",
    "Mr. Whymper left again.": "温珀先生又走了。",
    "Animal Farm": "动物农场",
}


def book_handler(provider_cls, failures=None):
    """Model double answering glossary, segment and title prompts"""
    failures = failures or {}

    async def handler(messages, tools):
        if provider_cls.is_glossary_request(messages):
            return GLOSSARY_ANSWER
        text = provider_cls.segment_text(messages)
        if text in failures:
            return failures[text]
        if text == "Napoleon was pleased." and tools is not None:
            await tools.dispatch(SAVE_TOOL, {"term": "Napoleon", "translation": "拿破仑"})
        return TRANSLATIONS.get(text, f"译:{text}")

    return handler


def make_config(**overrides):
    values = dict(source_language="en", target_language="zh", api_key="sk-test",
                  delay_between_items=0, item_concurrency=2, batch_size=25)
    values.update(overrides)
    return TranslationConfig(**values)


@pytest.fixture
def book_id(database, small_book_data):
    return import_book(database, small_book_data, "en", "zh", book_id="animal-farm")


@pytest.fixture
def bus():
    event_bus = EventBus()
    event_bus.enable_history()
    return event_bus


async def run_to_completion(driver, book_id, limit=20):
    results = []
    for _ in range(limit):
        result = await driver.translate_next(book_id)
        results.append(result)
        if result['done']:
            return results
    raise AssertionError("job did not finish")


class TestImportBook:
    """Test book import."""

    def test_creates_pending_job(self, database, book_id):
        job = database.get_job(book_id)

        assert job.status == JobStatus.PENDING
        assert job.total_chapters == 3
        assert job.current_chapter == 1
        assert database.get_chapter(book_id, 3)['title'] == "Part 3"


class TestTranslateNext:
    """Test stepping a job from pending to completed."""

    @pytest.mark.asyncio
    async def test_full_run(self, database, book_id, bus, scripted_provider):
        llm = scripted_provider(book_handler(scripted_provider))
        driver = TranslationJobDriver(database, llm, make_config(), bus)

        results = await run_to_completion(driver, book_id)

        assert [r['progress']['phase'] for r in results] == [
            "glossary", "title", "translating", "translating", "translating", "completed"]
        assert [r['progress']['chapters_completed'] for r in results] == [0, 0, 1, 2, 3, 3]
        assert [r['done'] for r in results] == [False] * 5 + [True]
        assert all(r['progress']['chapters_total'] == 3 for r in results)

        assert database.count_translations(book_id) == 6
        assert database.get_job(book_id).status == JobStatus.COMPLETED
        assert database.get_book(book_id)['translated_title'] == "动物农场"

        phases = [(e.data['old'], e.data['new']) for e in bus.get_events_by_type(EventType.JOB_PHASE_CHANGED)]
        assert phases == [
            ("pending", "extracting_glossary"),
            ("extracting_glossary", "translating"),
            ("translating", "completed"),
        ]
        assert len(bus.get_events_by_type(EventType.CHAPTER_COMPLETED)) == 3
        assert len(bus.get_events_by_type(EventType.BOOK_COMPLETED)) == 1

    @pytest.mark.asyncio
    async def test_glossary_is_enforced_and_persisted(self, database, book_id, scripted_provider):
        llm = scripted_provider(book_handler(scripted_provider))
        driver = TranslationJobDriver(database, llm, make_config())

        await run_to_completion(driver, book_id)

        chapter = database.get_chapter(book_id, 2)
        rows = database.get_translations(chapter['chapter_id'])
        assert rows[0]['translated_text'] == "温珀卖掉了小麦。"
        assert database.get_glossary(book_id) == {
            "Whymper": "温珀", "Mr. Whymper": "温珀先生", "Napoleon": "拿破仑"}
        assert database.get_job(book_id).glossary_snapshot["Napoleon"] == "拿破仑"

    @pytest.mark.asyncio
    async def test_rows_carry_source_and_order(self, database, book_id, scripted_provider):
        driver = TranslationJobDriver(database, scripted_provider(book_handler(scripted_provider)), make_config())

        await run_to_completion(driver, book_id)

        rows = database.get_book_translations(book_id)
        assert [(row['chapter_number'], row['address']) for row in rows] == [
            (1, "/body[1]/p[1]"), (1, "/body[1]/p[2]"),
            (2, "/body[1]/p[1]"), (2, "/body[1]/p[2]"),
            (3, "/body[1]/p[1]"), (3, "/body[1]/p[2]"),
        ]
        assert rows[1]['source_text'] == "The animals watched him."

    @pytest.mark.asyncio
    async def test_batches_within_a_chapter(self, database, book_id, scripted_provider):
        """With a batch size of 1 a two-node chapter takes two steps."""
        driver = TranslationJobDriver(database, scripted_provider(book_handler(scripted_provider)),
                                      make_config(batch_size=1))

        await driver.translate_next(book_id)  # glossary
        await driver.translate_next(book_id)  # title
        first = await driver.translate_next(book_id)
        second = await driver.translate_next(book_id)

        assert first['progress']['chapters_completed'] == 0
        assert first['progress']['items_completed'] == 1
        assert first['progress']['items_total'] == 2
        assert second['progress']['chapters_completed'] == 1
        assert database.get_job(book_id).current_chapter == 2

    @pytest.mark.asyncio
    async def test_failed_segment_gets_placeholder(self, database, book_id, bus, scripted_provider):
        error = RetryExhaustedError("exhausted", original_error=LLMServerError("busy", 503), attempts=4)
        llm = scripted_provider(book_handler(scripted_provider, {"The animals watched him.": error}))
        driver = TranslationJobDriver(database, llm, make_config(), bus)

        results = await run_to_completion(driver, book_id)

        assert results[-1]['progress']['phase'] == "completed"
        chapter = database.get_chapter(book_id, 1)
        rows = database.get_translations(chapter['chapter_id'])
        assert rows[1]['translated_text'] == PENDING_PLACEHOLDER
        failed = bus.get_events_by_type(EventType.SEGMENT_FAILED)
        assert failed[0].data['address'] == "/body[1]/p[2]"

    @pytest.mark.asyncio
    async def test_authentication_error_fails_job(self, database, book_id, bus, scripted_provider):
        llm = scripted_provider(book_handler(
            scripted_provider, {"Whymper sold the wheat.": LLMAuthenticationError("bad key")}))
        driver = TranslationJobDriver(database, llm, make_config(), bus)

        results = await run_to_completion(driver, book_id)

        assert results[-1]['done'] is True
        assert "bad key" in results[-1]['error']
        assert results[-1]['progress']['phase'] == "error"
        assert database.get_job(book_id).status == JobStatus.ERROR
        assert len(bus.get_events_by_type(EventType.JOB_FAILED)) == 1

        again = await driver.translate_next(book_id)
        assert again['done'] is True
        assert "bad key" in again['error']
        assert driver.get_status(book_id)['status'] == "error"

    @pytest.mark.asyncio
    async def test_glossary_store_failure_fails_job(self, database, book_id, bus, scripted_provider, monkeypatch):
        """A SQLite failure inside a glossary tool call is a job error, not a pending placeholder."""
        set_entry = database.set_glossary_entry

        def failing_set_entry(book, term, translation):
            if term == "Napoleon":
                raise CheckpointSaveError("Cannot save glossary entry: disk I/O error")
            set_entry(book, term, translation)

        monkeypatch.setattr(database, "set_glossary_entry", failing_set_entry)
        driver = TranslationJobDriver(database, scripted_provider(book_handler(scripted_provider)), make_config(), bus)

        results = await run_to_completion(driver, book_id)

        assert results[-1]['done'] is True
        assert "disk I/O error" in results[-1]['error']
        assert database.get_job(book_id).status == JobStatus.ERROR
        assert bus.get_events_by_type(EventType.SEGMENT_FAILED) == []
        rows = {row['address']: row['translated_text'] for row in database.get_translations(
            database.get_chapter(book_id, 2)['chapter_id'])}
        assert PENDING_PLACEHOLDER not in rows.values()

    @pytest.mark.asyncio
    async def test_rerun_of_a_batch_overwrites_rows(self, database, book_id, scripted_provider):
        """A batch repeated after a lost cursor update replaces its rows."""
        driver = TranslationJobDriver(database, scripted_provider(book_handler(scripted_provider)), make_config())
        await driver.translate_next(book_id)
        await driver.translate_next(book_id)
        await driver.translate_next(book_id)
        assert database.count_translations(book_id) == 2

        job = database.get_job(book_id)
        job.current_chapter = 1
        job.completed_chapters = 0
        job.current_item_offset = 0
        database.update_job(job)

        await driver.translate_next(book_id)

        assert database.count_translations(book_id) == 2
        assert database.get_job(book_id).completed_chapters == 1

    @pytest.mark.asyncio
    async def test_completed_job_is_idempotent(self, database, book_id, scripted_provider):
        llm = scripted_provider(book_handler(scripted_provider))
        driver = TranslationJobDriver(database, llm, make_config())
        await run_to_completion(driver, book_id)
        calls = len(llm.calls)

        result = await driver.translate_next(book_id)

        assert result['done'] is True
        assert 'error' not in result
        assert len(llm.calls) == calls

    @pytest.mark.asyncio
    async def test_mock_mode(self, database, book_id, scripted_provider):
        llm = scripted_provider(configured=False)
        driver = TranslationJobDriver(database, llm, make_config())

        await run_to_completion(driver, book_id)

        rows = database.get_book_translations(book_id)
        assert rows[0]['translated_text'] == "[Chinese: Mr. Whymper came to the farm....]"
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_missing_job(self, database, scripted_provider):
        driver = TranslationJobDriver(database, scripted_provider())

        result = await driver.translate_next("missing")

        assert result['done'] is True
        assert result['progress'] is None
        assert "missing" in result['error']
        assert driver.get_status("missing") is None

    @pytest.mark.asyncio
    async def test_status(self, database, book_id, scripted_provider):
        driver = TranslationJobDriver(database, scripted_provider(book_handler(scripted_provider)), make_config())

        assert driver.get_status(book_id)['status'] == "pending"
        await driver.translate_next(book_id)
        await driver.translate_next(book_id)
        await driver.translate_next(book_id)

        status = driver.get_status(book_id)
        assert status['status'] == "translating"
        assert status['error'] is None
        assert status['progress']['chapters_completed'] == 1
        assert status['progress']['current_chapter'] == 2
