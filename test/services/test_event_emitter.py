"""Unit tests for the outbound event channel."""

import logging

from king_bridge.models.event import EventType
from king_bridge.services.events import EventEmitter


class TestEventEmitter:
    def test_events_delivered_in_order(self):
        emitter = EventEmitter(maxsize=10)

        emitter.emit(EventType.USER_MESSAGE, {"content": "hello"})
        emitter.emit(EventType.MESSAGE, {"content": "hi there"})

        first = emitter.stream.get_nowait()
        second = emitter.stream.get_nowait()
        assert first.type == EventType.USER_MESSAGE
        assert first.data == {"content": "hello"}
        assert second.type == EventType.MESSAGE
        assert second.timestamp >= first.timestamp

    def test_missing_data_defaults_to_empty(self):
        emitter = EventEmitter(maxsize=1)
        emitter.emit(EventType.STOPPED)
        assert emitter.stream.get_nowait().data == {}

    def test_full_queue_drops_without_blocking(self, caplog):
        emitter = EventEmitter(maxsize=2)

        assert emitter.emit(EventType.STARTED) is True
        assert emitter.emit(EventType.MESSAGE, {"content": "a"}) is True
        with caplog.at_level(logging.WARNING, logger="king_bridge.services.events"):
            assert emitter.emit(EventType.MESSAGE, {"content": "b"}) is False

        assert emitter.dropped == 1
        assert emitter.stream.qsize() == 2
        assert "dropping event: message" in caplog.text

    def test_draining_makes_room_again(self):
        emitter = EventEmitter(maxsize=1)
        emitter.emit(EventType.STARTED)
        assert emitter.emit(EventType.STOPPED) is False

        emitter.stream.get_nowait()
        assert emitter.emit(EventType.STOPPED) is True
        assert emitter.stream.get_nowait().type == EventType.STOPPED

    def test_stream_is_read_only(self):
        emitter = EventEmitter(maxsize=2)
        emitter.emit(EventType.STARTED)

        stream = emitter.stream
        assert not hasattr(stream, "put")
        assert not hasattr(stream, "put_nowait")
        assert stream.qsize() == 1
        assert stream.get(timeout=1.0).type == EventType.STARTED
        assert stream.empty()
