"""Shared fakes: an in-memory event source and a recording alert sink."""

import queue
import threading
from datetime import datetime, timezone

import pytest

from threat_detector.errors import TransportClosed, TransportError
from threat_detector.models import SecurityEvent
from threat_detector.transport import AlertSink, EventSource


def make_event(event_type="authentication", result="failed",
               source_ip="10.0.0.5", raw_log="", action="login",
               user="alice", **extra):
    """Build a SecurityEvent with sane defaults (a failed login)."""
    return SecurityEvent(
        timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        source="sshd",
        source_ip=source_ip,
        event_type=event_type,
        user=user,
        action=action,
        result=result,
        raw_log=raw_log,
        **extra,
    )


class QueueEventSource(EventSource):
    """Thread-safe source; several workers may share one instance.

    Items may be SecurityEvents or exceptions (raised from receive()).
    Once empty, receive() returns None after a short wait, like a Kafka poll
    timeout.
    """

    def __init__(self, items=(), poll_timeout=0.01):
        self._items = queue.Queue()
        for item in items:
            self._items.put(item)
        self._poll_timeout = poll_timeout
        self.closed = False

    def push(self, item):
        self._items.put(item)

    def receive(self):
        if self.closed:
            raise TransportClosed("source closed")
        try:
            item = self._items.get(timeout=self._poll_timeout)
        except queue.Empty:
            return None
        if isinstance(item, Exception):
            raise item
        return item

    def drained(self):
        return self._items.empty()

    def close(self):
        self.closed = True


class RecordingSink(AlertSink):
    """Records sent alerts.  Optionally fails, or blocks until released."""

    def __init__(self, fail_ids=(), gate: threading.Event | None = None):
        self.sent = []
        self.fail_ids = set(fail_ids)
        self.gate = gate
        self.closed = False
        self._lock = threading.Lock()

    def send(self, alert):
        if self.gate is not None:
            self.gate.wait()
        if alert.alert_id in self.fail_ids:
            raise TransportError("broker unavailable")
        with self._lock:
            self.sent.append(alert)

    def close(self):
        self.closed = True


@pytest.fixture
def sink():
    return RecordingSink()
