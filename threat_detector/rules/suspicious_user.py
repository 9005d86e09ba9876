"""Suspicious user — logins against accounts that do not exist.

"Invalid user" lines are what sshd logs when a client tries a username the
host does not know — the fingerprint of username enumeration and
dictionary scanners.  Three from one source inside 5 minutes fires HIGH.

Independent of brute force: an event can count toward both rules.
"""

from threat_detector.models import Severity, ThreatType
from threat_detector.rules import CountedRule


class SuspiciousUser(CountedRule):
    id = "suspicious_user"
    counter_name = "invalid_user"
    threat_type = ThreatType.SUSPICIOUS_USER
    severity = Severity.HIGH
    alert_prefix = "SU"

    def match(self, event):
        return "invalid user" in event.raw_log.lower()

    def details(self, event, count):
        return (f"Multiple invalid user login attempts: {count} attempts "
                f"from {event.source_ip} within {self.window_text}")
