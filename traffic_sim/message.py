"""
message.py - Event record format and helpers.

Defines the structure of every event pushed to the log sink.
Format: dict with type, sender_id, timestamp, payload.
"""

import time

# Event Types
TYPE_TRANSITION = 'TRANSITION'
TYPE_HEARTBEAT = 'HEARTBEAT'
TYPE_FAILURE = 'FAILURE'
TYPE_REVIVAL = 'REVIVAL'
TYPE_TIMING = 'TIMING'
TYPE_NOTIFY = 'NOTIFY'
TYPE_STALE = 'STALE'
TYPE_CONTROL = 'CONTROL'
TYPE_INFO = 'INFO'


def now_ms():
    """Current wall-clock time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def create_message(msg_type, sender_id, text, payload=None):
    """
    Create a standard event dictionary.

    Args:
        msg_type (str): Type of the event (e.g., 'TRANSITION', 'HEARTBEAT')
        sender_id (str): Node id or coordinator name that produced the event
        text (str): Human readable message, without the sender prefix
        payload (dict, optional): Structured data specific to the event type

    Returns:
        dict: The formatted event
    """
    if payload is None:
        payload = {}

    return {
        'type': msg_type,
        'sender_id': sender_id,
        'timestamp': time.time(),
        'text': text,
        'payload': payload
    }


def format_line(msg, with_time=False):
    """Render an event as '<sender>: <text>', optionally prefixed with its local time."""
    line = f"{msg['sender_id']}: {msg['text']}"
    if with_time:
        stamp = time.strftime('%H:%M:%S', time.localtime(msg['timestamp']))
        line = f"[{stamp}] {line}"
    return line
