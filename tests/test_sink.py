import logging

from traffic_sim import message
from traffic_sim.sink import LogSink


class TestLogSink:
    """Tests for the append-only event stream."""

    def test_emit_records_event(self):
        sink = LogSink()
        msg = sink.emit(message.TYPE_INFO, "Node1", "hello", {'k': 1})

        assert msg['type'] == message.TYPE_INFO
        assert msg['sender_id'] == "Node1"
        assert msg['payload'] == {'k': 1}
        assert sink.lines() == ["Node1: hello"]
        assert len(sink) == 1

    def test_filters(self):
        sink = LogSink()
        sink.emit(message.TYPE_INFO, "Node1", "a")
        sink.emit(message.TYPE_HEARTBEAT, "Node1", "b")
        sink.emit(message.TYPE_INFO, "Node2", "c")

        assert [m['text'] for m in sink.events(message.TYPE_INFO)] == ["a", "c"]
        assert [m['text'] for m in sink.events(sender_id="Node1")] == ["a", "b"]

    def test_subscribers_receive_events(self):
        sink = LogSink()
        received = []
        sink.subscribe(received.append)
        sink.emit(message.TYPE_INFO, "Node1", "a")
        sink.unsubscribe(received.append)
        sink.emit(message.TYPE_INFO, "Node1", "b")

        assert [m['text'] for m in received] == ["a"]

    def test_history_is_bounded(self):
        sink = LogSink(history_limit=2)
        for text in ("a", "b", "c"):
            sink.emit(message.TYPE_INFO, "Node1", text)
        assert sink.lines() == ["Node1: b", "Node1: c"]

    def test_forwards_to_logging(self, caplog):
        sink = LogSink()
        with caplog.at_level(logging.INFO, logger="traffic_sim.events"):
            sink.emit(message.TYPE_STALE, "Coordinator", "Node Node1 FAILED")

        assert caplog.records[-1].levelno == logging.WARNING
        assert caplog.records[-1].getMessage() == "Coordinator: Node Node1 FAILED"

    def test_timed_line_format(self):
        msg = message.create_message(message.TYPE_INFO, "Node1", "x")
        line = message.format_line(msg, with_time=True)
        assert line.startswith("[") and line.endswith("] Node1: x")

    def test_failing_subscriber_is_isolated(self, caplog):
        sink = LogSink()
        received = []

        def broken(msg):
            raise ValueError("boom")

        sink.subscribe(broken)
        sink.subscribe(received.append)
        with caplog.at_level(logging.ERROR, logger="traffic_sim.events"):
            msg = sink.emit(message.TYPE_INFO, "Node1", "a")

        assert received == [msg]
        assert sink.lines() == ["Node1: a"]
        assert any(record.exc_info for record in caplog.records)
