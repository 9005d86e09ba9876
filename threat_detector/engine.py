"""Detection engine — evaluates one event against every rule.

Pure business logic, no Kafka dependency.  Dispatch workers feed events in
and queue the resulting alerts for the publisher.

The engine holds no per-event state of its own; window state lives in the
counter store, so one engine instance is shared by all worker threads.
"""

import logging

from threat_detector import metrics
from threat_detector.errors import StoreUnavailable
from threat_detector.models import SecurityEvent, ThreatAlert
from threat_detector.rules import Rule

logger = logging.getLogger(__name__)


class DetectionEngine:

    def __init__(self, rules: list[Rule]):
        self.rules = list(rules)

    def evaluate(self, event: SecurityEvent) -> list[ThreatAlert]:
        """Feed one event, get back zero or more alerts.

        Rules are independent: each match yields its own alert, and a counter
        store failure only silences the rule that hit it.
        """
        alerts = []
        for rule in self.rules:
            try:
                alert = rule.evaluate(event)
            except StoreUnavailable as e:
                metrics.store_errors_total.labels(rule_id=rule.id).inc()
                logger.warning("Rule %s abstained for %s: %s",
                               rule.id, event.source_ip or "-", e)
                continue

            if alert is not None:
                metrics.alerts_total.labels(
                    threat_type=alert.threat_type.value,
                    severity=alert.severity.value,
                ).inc()
                alerts.append(alert)
        return alerts
