"""
sink.py - Append-only event stream shared by nodes and the coordinator.

Core components push events here instead of calling presentation code;
viewers subscribe or read the history.
"""

import logging
from collections import deque

from . import config
from . import message

logger = logging.getLogger("traffic_sim.events")

_LEVELS = {
    message.TYPE_STALE: logging.WARNING,
    message.TYPE_FAILURE: logging.WARNING,
    message.TYPE_HEARTBEAT: logging.DEBUG,
}


class LogSink:
    def __init__(self, history_limit=config.LOG_HISTORY_LIMIT):
        """
        Initialize the sink.

        Args:
            history_limit (int): Maximum number of events kept in memory (None = unbounded).
        """
        self._history = deque(maxlen=history_limit)
        self._subscribers = []

    def emit(self, msg_type, sender_id, text, payload=None):
        """Record an event, forward it to the logging module and notify subscribers."""
        msg = message.create_message(msg_type, sender_id, text, payload)
        self._history.append(msg)

        logger.log(_LEVELS.get(msg_type, logging.INFO), message.format_line(msg))

        for callback in list(self._subscribers):
            try:
                callback(msg)
            except Exception:
                logger.exception(f"Subscriber {callback!r} failed on {msg['type']} event")
        return msg

    def subscribe(self, callback):
        """Register a callable receiving every future event dict."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback):
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def events(self, msg_type=None, sender_id=None):
        """Return a copy of the recorded events, optionally filtered."""
        return [
            msg for msg in self._history
            if (msg_type is None or msg['type'] == msg_type)
            and (sender_id is None or msg['sender_id'] == sender_id)
        ]

    def lines(self, with_time=False):
        """Return the history rendered as '<sender>: <text>' lines."""
        return [message.format_line(msg, with_time) for msg in self._history]

    def __len__(self):
        return len(self._history)
