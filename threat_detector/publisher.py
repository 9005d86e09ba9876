"""Alert publisher — the single consumer of the internal alert queue.

Alerts go out one at a time, in the order they were queued.  A send that
fails is logged and the alert is dropped; retry and backoff belong to the
transport (the Kafka producer already retries internally).

close() enqueues a sentinel behind everything already queued, so the
publisher delivers the backlog before it exits.  Only call it once every
producer of the queue has stopped, or later alerts land behind the sentinel
and are never read.
"""

import logging
import queue
import threading

from threat_detector import metrics
from threat_detector.errors import TransportError
from threat_detector.transport import AlertSink

logger = logging.getLogger(__name__)

_CLOSED = object()


class AlertPublisher(threading.Thread):

    def __init__(self, alerts: queue.Queue, sink: AlertSink):
        super().__init__(name="alert-publisher", daemon=True)
        self._alerts = alerts
        self._sink = sink
        self.published = 0
        self.dropped = 0

    def run(self):
        logger.info("Alert publisher started")
        while True:
            alert = self._alerts.get()
            try:
                if alert is _CLOSED:
                    break
                metrics.alert_queue_depth.dec()
                self._publish(alert)
            finally:
                self._alerts.task_done()
        logger.info("Alert publisher stopped  published=%d  dropped=%d",
                    self.published, self.dropped)

    def close(self):
        """Ask the publisher to exit once the current backlog is delivered."""
        self._alerts.put(_CLOSED)

    def _publish(self, alert):
        try:
            self._sink.send(alert)
        except TransportError as e:
            self.dropped += 1
            metrics.publish_errors_total.inc()
            logger.error("Dropped alert %s (%s from %s): %s",
                         alert.alert_id, alert.threat_type.value,
                         alert.source_ip, e)
            return
        self.published += 1
        metrics.alerts_published_total.inc()
