"""Brute force — repeated failed logins from one source.

Counting failed authentications per source IP inside a bounded window is
the minimal signal for credential guessing.  Fires HIGH once the source
reaches 5 failures within 5 minutes (both tunable via the rule policy).
"""

from threat_detector.models import Severity, ThreatType
from threat_detector.rules import CountedRule


class BruteForce(CountedRule):
    id = "brute_force"
    counter_name = "failed_auth"
    threat_type = ThreatType.BRUTE_FORCE
    severity = Severity.HIGH
    alert_prefix = "BF"

    def match(self, event):
        return event.event_type == "authentication" and event.result == "failed"

    def details(self, event, count):
        user = f" (last user: {event.user})" if event.user else ""
        return (f"Brute force attack detected: {count} failed login attempts "
                f"from {event.source_ip} within {self.window_text}{user}")
