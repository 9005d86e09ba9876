"""Lifecycle coordinator — N dispatch workers, one publisher, ordered shutdown.

Everything the pipeline touches is constructed outside and handed in: the
coordinator owns those handles from start() on and releases them in
shutdown().

Shutdown order matters:

  1. set the stop event       workers stop pulling new events
  2. join the workers         each finishes the event in hand
  3. close the alert queue    publisher drains the backlog, then exits
  4. close sources, sink, store

Nothing is force-killed, so every alert queued before step 3 reaches the
sink (or is logged as a delivery failure).
"""

import logging
import queue
import threading
from typing import Callable

from threat_detector.counter_store import CounterStore
from threat_detector.engine import DetectionEngine
from threat_detector.publisher import AlertPublisher
from threat_detector.rules import Rule
from threat_detector.transport import AlertSink, EventSource
from threat_detector.worker import DispatchWorker

logger = logging.getLogger(__name__)


class ThreatDetector:

    def __init__(self, source_factory: Callable[[int], EventSource],
                 sink: AlertSink, store: CounterStore, rules: list[Rule],
                 num_workers: int = 4, queue_size: int = 100):
        if num_workers < 1:
            raise ValueError("num_workers must be at least 1")
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")

        self._source_factory = source_factory
        self._sink = sink
        self._store = store
        self.engine = DetectionEngine(rules)
        self.num_workers = num_workers

        self.alerts: queue.Queue = queue.Queue(maxsize=queue_size)
        self._stop = threading.Event()
        self.workers: list[DispatchWorker] = []
        self.publisher: AlertPublisher | None = None
        self._started = False
        self._closed = False

    def start(self) -> None:
        if self._started:
            raise RuntimeError("detector already started")
        self._started = True

        sources = []
        try:
            for i in range(self.num_workers):
                sources.append(self._source_factory(i))
        except Exception:
            for source in sources:
                source.close()
            raise

        self.publisher = AlertPublisher(self.alerts, self._sink)
        self.publisher.start()
        for i, source in enumerate(sources):
            worker = DispatchWorker(i, source, self.engine, self.alerts, self._stop)
            self.workers.append(worker)
            worker.start()

        logger.info("Threat detector started  workers=%d  rules=%s  queue=%d",
                    self.num_workers, [r.id for r in self.engine.rules],
                    self.alerts.maxsize)

    @property
    def alive(self) -> bool:
        """True while at least one dispatch worker is still running."""
        return any(w.is_alive() for w in self.workers)

    @property
    def failures(self) -> list[Exception]:
        return [w.failure for w in self.workers if w.failure is not None]

    def shutdown(self) -> list[Exception]:
        """Stop intake, drain queued alerts, release resources.

        Returns the errors that ended workers abnormally (empty when clean).
        Safe to call more than once.
        """
        if self._closed:
            return self.failures
        self._closed = True
        logger.info("Shutting down threat detector...")

        self._stop.set()
        for worker in self.workers:
            worker.join()

        if self.publisher is not None:
            self.publisher.close()
            self.publisher.join()

        for worker in self.workers:
            worker.source.close()
        self._sink.close()
        self._store.close()

        processed = sum(w.processed for w in self.workers)
        published = self.publisher.published if self.publisher else 0
        logger.info("Done. %d events processed, %d alerts published.",
                    processed, published)
        return self.failures
