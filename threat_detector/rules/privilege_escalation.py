"""Privilege escalation — sudo/privilege actions touching sensitive targets.

Escalation attempts are rare and each one is independently actionable, so
this rule has no counter and no threshold: every qualifying event fires
MEDIUM.  It never talks to the counter store and therefore keeps working
through a store outage.
"""

from threat_detector.models import Severity, ThreatType
from threat_detector.rules import Rule, RulePolicy

_KEYWORDS = ("sudo", "privilege")


class PrivilegeEscalation(Rule):
    id = "privilege_escalation"
    threat_type = ThreatType.PRIVILEGE_ESCALATION
    severity = Severity.MEDIUM
    alert_prefix = "PE"

    DEFAULT_TARGETS = ("/etc/shadow", "/etc/passwd", "/root", "chmod 777", "useradd")

    def __init__(self, policy: RulePolicy | None = None):
        targets = policy.sensitive_targets if policy else ()
        self.sensitive_targets = tuple(
            t.lower() for t in (targets or self.DEFAULT_TARGETS)
        )

    def match(self, event) -> str | None:
        """Return the sensitive target that matched, or None."""
        action = event.action.lower()
        event_type = event.event_type.lower()
        if not any(k in action or k in event_type for k in _KEYWORDS):
            return None
        raw = event.raw_log.lower()
        for target in self.sensitive_targets:
            if target in raw:
                return target
        return None

    def evaluate(self, event):
        target = self.match(event)
        if target is None:
            return None
        who = event.user or "unknown user"
        return self._alert(
            event,
            f"Privilege escalation attempt by {who} from "
            f"{event.source_ip or 'unknown source'} touching '{target}'",
        )
