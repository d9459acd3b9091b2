"""Unit tests for the unified logger and its event bridge."""

from glossa.core.events import EventBus, EventType
from glossa.utils.unified_logger import LogLevel, LogType, UnifiedLogger


def make_logger(min_level=LogLevel.DEBUG):
    entries = []
    logger = UnifiedLogger("test", console_output=False, enable_colors=False,
                           min_level=min_level, storage_callback=entries.append)
    return logger, entries


class TestUnifiedLogger:
    """Test structured entries and level filtering."""

    def test_entries_reach_storage(self):
        logger, entries = make_logger()

        logger.info("hello", LogType.GENERAL, {'a': 1})

        assert entries[0]['level'] == 'INFO'
        assert entries[0]['type'] == 'general'
        assert entries[0]['data'] == {'a': 1}

    def test_min_level(self):
        logger, entries = make_logger(min_level=LogLevel.WARNING)

        logger.info("quiet")
        logger.warning("loud")

        assert [e['message'] for e in entries] == ["loud"]

    def test_console_output(self, capsys):
        logger = UnifiedLogger("test", enable_colors=False)

        logger.info("5 terms (5 new)", LogType.GLOSSARY)

        assert "GLOSSARY 5 terms (5 new)" in capsys.readouterr().out


class TestEventListener:
    """Test the bridge from pipeline events to log entries."""

    def test_pipeline_events_are_logged(self):
        logger, entries = make_logger()
        bus = EventBus()
        bus.subscribe_all(logger.create_event_listener())

        bus.emit(EventType.GLOSSARY_BUILT, total=3, added=2)
        bus.emit(EventType.JOB_PHASE_CHANGED, book_id="b1", old="pending", new="extracting_glossary")
        bus.emit(EventType.SEGMENT_FAILED, chapter=2, address="/body[1]/p[1]", error="boom")
        bus.emit(EventType.JOB_FAILED, book_id="b1", error="bad key")

        assert entries[0]['type'] == LogType.GLOSSARY.value
        assert entries[0]['message'] == "3 terms (2 new)"
        assert entries[1]['type'] == LogType.JOB_PHASE.value
        assert "pending → extracting_glossary" in entries[1]['message']
        assert entries[2]['level'] == 'WARNING'
        assert entries[2]['data']['address'] == "/body[1]/p[1]"
        assert entries[3]['level'] == 'ERROR'

    def test_segment_translated_is_silent(self):
        logger, entries = make_logger()
        listener = logger.create_event_listener()
        bus = EventBus()
        bus.subscribe_all(listener)

        bus.emit(EventType.SEGMENT_TRANSLATED, chapter=1, address="/body[1]/p[1]")

        assert entries == []
