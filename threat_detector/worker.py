"""Dispatch worker — receive event, run the engine, queue the alerts.

One thread per worker.  The stop event is checked only between events, so
an event already in hand is always evaluated to completion and its alerts
queued before the thread exits.

Queueing blocks while the alert queue is full.  That is the back-pressure
path: a slow outbound transport stalls intake instead of growing memory.
"""

import logging
import queue
import threading

from threat_detector import metrics
from threat_detector.engine import DetectionEngine
from threat_detector.errors import MalformedEvent, TransportClosed, TransportError
from threat_detector.transport import EventSource

logger = logging.getLogger(__name__)


class DispatchWorker(threading.Thread):

    def __init__(self, worker_id: int, source: EventSource,
                 engine: DetectionEngine, alerts: queue.Queue,
                 stop: threading.Event):
        super().__init__(name=f"dispatch-{worker_id}", daemon=True)
        self.worker_id = worker_id
        self.source = source
        self._engine = engine
        self._alerts = alerts
        self._stop_event = stop
        self.processed = 0
        self.failure: Exception | None = None

    def run(self):
        logger.info("Worker %d started", self.worker_id)
        while not self._stop_event.is_set():
            try:
                event = self.source.receive()
            except MalformedEvent as e:
                metrics.malformed_events_total.inc()
                logger.warning("Worker %d dropped malformed event: %s",
                               self.worker_id, e)
                continue
            except TransportClosed:
                logger.info("Worker %d: event source closed", self.worker_id)
                break
            except TransportError as e:
                self.failure = e
                logger.error("Worker %d stopping on transport failure: %s",
                             self.worker_id, e)
                break
            except Exception:
                # unexpected decode failure: drop the record, keep the thread
                metrics.malformed_events_total.inc()
                logger.exception("Worker %d dropped undecodable record",
                                 self.worker_id)
                continue

            if event is None:
                continue

            try:
                self.dispatch(event)
            except Exception:
                logger.exception("Worker %d dropped event from %s after an "
                                 "evaluation error", self.worker_id,
                                 event.source_ip or "-")

        logger.info("Worker %d stopped after %d events",
                    self.worker_id, self.processed)

    def dispatch(self, event):
        metrics.events_total.inc()
        for alert in self._engine.evaluate(event):
            logger.info("ALERT  %-20s %-6s src=%s  count=%d  id=%s",
                        alert.threat_type.value, alert.severity.value,
                        alert.source_ip, alert.event_count, alert.alert_id)
            # counted before put() so the publisher never decrements first
            metrics.alert_queue_depth.inc()
            self._alerts.put(alert)
        self.processed += 1
