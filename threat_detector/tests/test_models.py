"""Tests for event decoding, alert payloads, and alert ids."""

import json
import threading
from datetime import datetime, timezone

import pytest

from threat_detector.errors import MalformedEvent
from threat_detector.models import (
    SecurityEvent,
    Severity,
    ThreatAlert,
    ThreatType,
    new_alert_id,
)

_GOOD = {
    "timestamp": "2024-05-01T12:00:00Z",
    "source": "sshd",
    "source_ip": "203.0.113.9",
    "event_type": "authentication",
    "user": "root",
    "action": "login",
    "result": "failed",
    "raw_log": "Failed password for root from 203.0.113.9 port 5022 ssh2",
    "metadata": {"hostname": "web-01", "port": 5022},
}


class TestEventDecoding:
    def test_full_record(self):
        event = SecurityEvent.from_json(json.dumps(_GOOD).encode())
        assert event.timestamp == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        assert event.source_ip == "203.0.113.9"
        assert event.result == "failed"
        assert event.metadata == {"hostname": "web-01", "port": "5022"}

    def test_offset_and_naive_timestamps(self):
        event = SecurityEvent.from_dict({"timestamp": "2024-05-01T14:00:00+02:00"})
        assert event.timestamp == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        naive = SecurityEvent.from_dict({"timestamp": "2024-05-01T12:00:00"})
        assert naive.timestamp.tzinfo is timezone.utc

    @pytest.mark.parametrize("stamp,micros", [
        ("2024-05-01T12:00:00.5Z", 500000),
        ("2024-05-01T12:00:00.1234Z", 123400),
        ("2024-05-01T12:00:00.123Z", 123000),
        ("2024-05-01T12:00:00.123456789Z", 123456),
        ("2024-05-01T14:00:00.12345+02:00", 123450),
    ])
    def test_fractional_seconds_of_any_length(self, stamp, micros):
        event = SecurityEvent.from_dict({"timestamp": stamp})
        assert event.timestamp == datetime(2024, 5, 1, 12, 0, 0, micros,
                                           tzinfo=timezone.utc)

    def test_epoch_timestamp(self):
        event = SecurityEvent.from_dict({"timestamp": 1714564800})
        assert event.timestamp == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def test_missing_fields_default_to_empty(self):
        before = datetime.now(timezone.utc)
        event = SecurityEvent.from_json(b"{}")
        assert event.timestamp >= before
        assert event.source_ip == ""
        assert event.raw_log == ""
        assert event.metadata == {}

    def test_null_fields_default_to_empty(self):
        event = SecurityEvent.from_dict({"user": None, "metadata": None})
        assert event.user == ""
        assert event.metadata == {}

    @pytest.mark.parametrize("payload", [
        b"not json",
        b"\xff\xfe\x00",
        b"[1, 2, 3]",
        b'"a string"',
        b"",
        b'{"timestamp": "yesterday"}',
        b'{"timestamp": true}',
        b'{"timestamp": 1e300}',
        b'{"metadata": ["a"]}',
        b'{"source_ip": {"v4": "1.2.3.4"}}',
        b"[" * 200000,
    ])
    def test_malformed_payloads(self, payload):
        with pytest.raises(MalformedEvent):
            SecurityEvent.from_json(payload)

    def test_round_trip_through_wire_form(self):
        event = SecurityEvent.from_dict(_GOOD)
        assert SecurityEvent.from_dict(event.to_dict()) == event

    def test_events_are_immutable(self):
        event = SecurityEvent.from_dict(_GOOD)
        with pytest.raises(AttributeError):
            event.source_ip = "1.1.1.1"


class TestAlertPayload:
    def _alert(self, **overrides):
        fields = dict(
            alert_id="BF-1-abcd",
            timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
            severity=Severity.HIGH,
            threat_type=ThreatType.BRUTE_FORCE,
            source_ip="203.0.113.9",
            details="5 failures",
            event_count=5,
            raw_events=("line 1", "line 2"),
        )
        fields.update(overrides)
        return ThreatAlert(**fields)

    def test_field_names_and_types(self):
        payload = json.loads(self._alert().to_json())
        assert payload == {
            "alert_id": "BF-1-abcd",
            "timestamp": "2024-05-01T12:00:00+00:00",
            "severity": "HIGH",
            "threat_type": "BRUTE_FORCE",
            "source_ip": "203.0.113.9",
            "details": "5 failures",
            "event_count": 5,
            "raw_events": ["line 1", "line 2"],
        }

    def test_defaults_for_stateless_alerts(self):
        payload = self._alert(event_count=0, raw_events=()).to_dict()
        assert payload["event_count"] == 0
        assert payload["raw_events"] == []

    def test_timestamp_is_iso_8601(self):
        payload = self._alert().to_dict()
        assert datetime.fromisoformat(payload["timestamp"]).tzinfo is not None


class TestAlertIds:
    def test_prefix_and_shape(self):
        prefix, ns, suffix = new_alert_id("BF").split("-")
        assert prefix == "BF"
        assert ns.isdigit()
        assert len(suffix) == 8

    def test_unique_across_threads(self):
        ids = []
        lock = threading.Lock()

        def burst():
            local = [new_alert_id("SU") for _ in range(2000)]
            with lock:
                ids.extend(local)

        threads = [threading.Thread(target=burst) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(set(ids)) == len(ids)
