"""Tests for the synthetic event generator and alert tail formatting.

Generated events go through the real decoder and rule set, so a schema
drift between producer.py and the detector shows up here.
"""

import random

from consumer import format_alert
from producer import Host, _create_hosts, auth_event, make_event, sudo_event
from threat_detector.counter_store import InMemoryCounterStore
from threat_detector.engine import DetectionEngine
from threat_detector.models import SecurityEvent
from threat_detector.rules import build_rules


def _engine():
    return DetectionEngine(build_rules(InMemoryCounterStore()))


def _run(host, n):
    engine = _engine()
    alerts = []
    for _ in range(n):
        alerts.extend(engine.evaluate(SecurityEvent.from_dict(make_event(host))))
    return alerts


class TestHostPool:
    def test_roles_and_unique_ips(self):
        hosts = _create_hosts(5, 2, 2, 1)
        roles = [h.role for h in hosts]
        assert roles.count("normal") == 5
        assert roles.count("brute_forcer") == 2
        assert roles.count("scanner") == 2
        assert roles.count("escalator") == 1
        assert len({h.ip for h in hosts}) == len(hosts)


class TestGeneratedEvents:
    def test_events_decode(self):
        host = Host("10.0.1.10", "normal-00", "normal", 10)
        for event in (auth_event(host, "alice", success=True),
                      sudo_event(host, "bob", "/bin/ls /root")):
            decoded = SecurityEvent.from_dict(event)
            assert decoded.source_ip == "10.0.1.10"

    def test_brute_forcer_trips_brute_force(self):
        random.seed(1)
        alerts = _run(Host("203.0.113.10", "bf-00", "brute_forcer", 60), 5)
        assert [a.threat_type.value for a in alerts] == ["BRUTE_FORCE"]

    def test_scanner_trips_suspicious_user(self):
        random.seed(2)
        alerts = _run(Host("198.51.100.10", "sc-00", "scanner", 60), 3)
        assert [a.threat_type.value for a in alerts] == ["SUSPICIOUS_USER"]

    def test_sensitive_sudo_trips_privilege_escalation(self):
        host = Host("10.0.9.10", "esc-00", "escalator", 5)
        event = SecurityEvent.from_dict(sudo_event(host, "bob", "/bin/cat /etc/shadow"))
        alerts = _engine().evaluate(event)
        assert [a.threat_type.value for a in alerts] == ["PRIVILEGE_ESCALATION"]

    def test_benign_sudo_is_quiet(self):
        host = Host("10.0.1.11", "normal-01", "normal", 5)
        event = SecurityEvent.from_dict(sudo_event(host, "bob", "/usr/bin/apt update"))
        assert _engine().evaluate(event) == []


def test_format_alert():
    line = format_alert({
        "severity": "HIGH", "threat_type": "BRUTE_FORCE",
        "source_ip": "203.0.113.9", "event_count": 5, "details": "5 failures",
    })
    assert line.startswith("[HIGH  ] BRUTE_FORCE")
    assert "src=203.0.113.9" in line
    assert line.endswith("5 failures")
