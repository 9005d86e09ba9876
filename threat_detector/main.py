"""Threat detector service — consumes security events, produces threat alerts.

Reads normalized events from security-events with N worker threads (one
Kafka consumer each, same consumer group), evaluates every event against
the detection rules, and publishes alerts to security-alerts.  Window
counters live in Redis so workers and replicas share them.

Usage:
    python -m threat_detector.main
    python -m threat_detector.main --bootstrap-servers kafka-1:29092 --workers 8
    python -m threat_detector.main --memory-store --policy policy.yml
"""

import argparse
import logging
import signal
import sys
import threading

from prometheus_client import start_http_server

from threat_detector.coordinator import ThreatDetector
from threat_detector.counter_store import InMemoryCounterStore, RedisCounterStore
from threat_detector.rules import build_rules
from threat_detector.rules.loader import load_policy
from threat_detector.transport import (
    DEFAULT_GROUP_ID,
    DEFAULT_INPUT_TOPIC,
    DEFAULT_OUTPUT_TOPIC,
    KafkaAlertSink,
    KafkaEventSource,
    ensure_topic,
)

logger = logging.getLogger("threat_detector.main")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Threat detector")
    parser.add_argument("--bootstrap-servers", default="localhost:9092")
    parser.add_argument("--input-topic", default=DEFAULT_INPUT_TOPIC)
    parser.add_argument("--output-topic", default=DEFAULT_OUTPUT_TOPIC)
    parser.add_argument("--group-id", default=DEFAULT_GROUP_ID)
    parser.add_argument("--redis-url", default="redis://localhost:6379/0")
    parser.add_argument(
        "--memory-store", action="store_true", default=False,
        help="Keep window counters in process memory instead of Redis "
             "(single replica only)",
    )
    parser.add_argument("--workers", type=int, default=4)
    parser.add_argument(
        "--queue-size", type=int, default=100,
        help="Alerts buffered between workers and the publisher",
    )
    parser.add_argument("--poll-timeout", type=float, default=1.0)
    parser.add_argument("--policy", help="YAML file overriding rule thresholds")
    parser.add_argument(
        "--metrics-port", type=int, default=0,
        help="Serve Prometheus metrics on this port (0 disables)",
    )
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s: %(message)s",
    )

    policy = load_policy(args.policy) if args.policy else None
    store = InMemoryCounterStore() if args.memory_store \
        else RedisCounterStore.from_url(args.redis_url)

    ensure_topic(args.bootstrap_servers, args.output_topic)

    if args.metrics_port:
        start_http_server(args.metrics_port)
        logger.info("Prometheus metrics server started on :%d", args.metrics_port)

    detector = ThreatDetector(
        source_factory=lambda i: KafkaEventSource.create(
            args.bootstrap_servers, args.input_topic, args.group_id,
            poll_timeout=args.poll_timeout,
        ),
        sink=KafkaAlertSink.create(args.bootstrap_servers, args.output_topic),
        store=store,
        rules=build_rules(store, policy),
        num_workers=args.workers,
        queue_size=args.queue_size,
    )

    stop = threading.Event()

    def _shutdown(sig, frame):
        logger.info("Received %s", signal.Signals(sig).name)
        stop.set()

    signal.signal(signal.SIGINT, _shutdown)   # Ctrl+C (local dev)
    signal.signal(signal.SIGTERM, _shutdown)  # docker stop / k8s pod termination

    detector.start()
    workers_died = False
    try:
        while not stop.wait(1.0):
            if not detector.alive:
                logger.error("All dispatch workers have exited")
                workers_died = True
                break
    finally:
        failures = detector.shutdown()

    for failure in failures:
        logger.error("Worker failure: %s", failure)
    return 1 if failures or workers_died else 0


if __name__ == "__main__":
    sys.exit(main())
