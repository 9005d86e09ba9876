"""Prometheus metrics for the detector.

Each Counter/Gauge registers itself in prometheus_client's global REGISTRY
on construction.  main() calls start_http_server() when --metrics-port is
set; otherwise the values are simply never scraped.
"""

from prometheus_client import Counter, Gauge

# ---------------------------------------------------------------------------
# Intake
# ---------------------------------------------------------------------------
events_total = Counter(
    "td_events_total",
    "Security events decoded and evaluated",
)
malformed_events_total = Counter(
    "td_malformed_events_total",
    "Inbound records dropped because they could not be decoded",
)

# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------
alerts_total = Counter(
    "td_alerts_total",
    "Alerts raised by the detection engine",
    ["threat_type", "severity"],
)
store_errors_total = Counter(
    "td_counter_store_errors_total",
    "Rule evaluations that abstained because the counter store was down",
    ["rule_id"],
)

# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------
alerts_published_total = Counter(
    "td_alerts_published_total",
    "Alerts handed to the outbound transport",
)
publish_errors_total = Counter(
    "td_publish_errors_total",
    "Alerts dropped because the outbound transport rejected them",
)
alert_queue_depth = Gauge(
    "td_alert_queue_depth",
    "Alerts waiting in the internal queue for the publisher",
)
