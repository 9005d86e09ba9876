# Detection rules as small Python classes, one per threat type.
#
# Every rule exposes the same single capability, evaluate(event), returning
# a ThreatAlert or None.  The engine does not care how a rule decides: two of
# the three consult the counter store, one is a pure predicate.  Adding a
# threat type means adding one module here with a class that honours that
# contract and listing it in build_rules().
#
# Rules must never raise on a malformed event.  Absent or empty fields fail
# to match.  The only exception allowed to escape evaluate() is
# StoreUnavailable, which the engine turns into "this rule abstains".

from dataclasses import dataclass

from threat_detector.counter_store import CounterStore, counter_key
from threat_detector.models import (
    SecurityEvent,
    Severity,
    ThreatAlert,
    ThreatType,
    new_alert_id,
    utcnow,
)


@dataclass(frozen=True)
class RulePolicy:
    """Tunable policy for one rule.  Thresholds are not structure."""

    threshold: int = 1
    window_seconds: int = 300
    sensitive_targets: tuple[str, ...] = ()


class Rule:
    """Base detection rule.  Subclass and implement evaluate()."""

    id: str
    threat_type: ThreatType
    severity: Severity
    alert_prefix: str

    def evaluate(self, event: SecurityEvent) -> ThreatAlert | None:
        raise NotImplementedError

    def _alert(self, event: SecurityEvent, details: str,
               event_count: int = 0) -> ThreatAlert:
        return ThreatAlert(
            alert_id=new_alert_id(self.alert_prefix),
            timestamp=utcnow(),
            severity=self.severity,
            threat_type=self.threat_type,
            source_ip=event.source_ip,
            details=details,
            event_count=event_count,
            raw_events=(event.raw_log,) if event.raw_log else (),
        )


class CountedRule(Rule):
    """A rule that fires once a per-source counter reaches a threshold.

    Subclasses set ``counter_name`` and implement match() and details().
    """

    counter_name: str

    def __init__(self, store: CounterStore, policy: RulePolicy):
        self.store = store
        self.threshold = policy.threshold
        self.window_seconds = policy.window_seconds

    def match(self, event: SecurityEvent) -> bool:
        raise NotImplementedError

    def details(self, event: SecurityEvent, count: int) -> str:
        raise NotImplementedError

    @property
    def window_text(self) -> str:
        if self.window_seconds % 60 == 0:
            minutes = self.window_seconds // 60
            return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"
        return f"{self.window_seconds} seconds"

    def evaluate(self, event):
        if not self.match(event):
            return None
        # No source means no per-source key; counting these together would
        # let unrelated hosts push each other over the threshold.
        if not event.source_ip:
            return None

        key = counter_key(self.counter_name, event.source_ip)
        count = self.store.incr(key)
        self.store.expire(key, self.window_seconds)

        if count >= self.threshold:
            return self._alert(event, self.details(event, count), event_count=count)
        return None


from threat_detector.rules.brute_force import BruteForce
from threat_detector.rules.privilege_escalation import PrivilegeEscalation
from threat_detector.rules.suspicious_user import SuspiciousUser

DEFAULT_POLICY: dict[str, RulePolicy] = {
    BruteForce.id: RulePolicy(threshold=5, window_seconds=300),
    PrivilegeEscalation.id: RulePolicy(
        sensitive_targets=PrivilegeEscalation.DEFAULT_TARGETS,
    ),
    SuspiciousUser.id: RulePolicy(threshold=3, window_seconds=300),
}


def build_rules(store: CounterStore,
                policy: dict[str, RulePolicy] | None = None) -> list[Rule]:
    """Instantiate every rule against *store*, filling gaps from DEFAULT_POLICY."""
    policy = {**DEFAULT_POLICY, **(policy or {})}
    return [
        BruteForce(store, policy[BruteForce.id]),
        PrivilegeEscalation(policy[PrivilegeEscalation.id]),
        SuspiciousUser(store, policy[SuspiciousUser.id]),
    ]
