"""Unit tests for Event system."""

from glossa.core.events import Event, EventBus, EventType


class TestEventBus:
    """Test EventBus functionality."""

    def test_subscribe_and_publish(self):
        """Subscribe to event and receive it when published."""
        bus = EventBus()
        received_events = []

        bus.subscribe(EventType.SEGMENT_TRANSLATED, received_events.append)
        bus.publish(Event(type=EventType.SEGMENT_TRANSLATED, data={"address": "/body[1]/p[1]"}))

        assert len(received_events) == 1
        assert received_events[0].data["address"] == "/body[1]/p[1]"

    def test_other_types_not_delivered(self):
        bus = EventBus()
        received_events = []

        bus.subscribe(EventType.CHAPTER_STARTED, received_events.append)
        bus.emit(EventType.CHAPTER_COMPLETED, chapter=1)

        assert received_events == []

    def test_subscribe_all(self):
        """One listener receives every event type."""
        bus = EventBus()
        received_events = []

        bus.subscribe_all(received_events.append)
        bus.emit(EventType.JOB_PHASE_CHANGED, source="job_driver", old="pending", new="extracting_glossary")
        bus.emit(EventType.BOOK_COMPLETED)

        assert [e.type for e in received_events] == [EventType.JOB_PHASE_CHANGED, EventType.BOOK_COMPLETED]
        assert received_events[0].source == "job_driver"
        assert received_events[0].data == {"old": "pending", "new": "extracting_glossary"}

    def test_unsubscribe(self):
        bus = EventBus()
        received_count = [0]

        def handler(event):
            received_count[0] += 1

        bus.subscribe(EventType.SEGMENT_FAILED, handler)
        bus.emit(EventType.SEGMENT_FAILED)
        bus.unsubscribe(EventType.SEGMENT_FAILED, handler)
        bus.emit(EventType.SEGMENT_FAILED)

        assert received_count[0] == 1

    def test_listener_failure_is_isolated(self):
        """A failing listener does not stop delivery or reach the publisher."""
        bus = EventBus()
        received_events = []

        def broken(event):
            raise RuntimeError("listener bug")

        bus.subscribe(EventType.GLOSSARY_BUILT, broken)
        bus.subscribe(EventType.GLOSSARY_BUILT, received_events.append)
        bus.emit(EventType.GLOSSARY_BUILT, total=3, added=3)

        assert len(received_events) == 1

    def test_history(self):
        bus = EventBus()
        bus.emit(EventType.CHAPTER_STARTED)
        bus.enable_history()
        bus.emit(EventType.CHAPTER_STARTED, chapter=1)
        bus.emit(EventType.CHAPTER_COMPLETED, chapter=1)

        assert len(bus.get_history()) == 2
        assert len(bus.get_events_by_type(EventType.CHAPTER_COMPLETED)) == 1

        bus.clear_history()
        assert bus.get_history() == []
