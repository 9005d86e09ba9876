"""Kafka transport — inbound security events, outbound alerts.

The rest of the detector only sees two small capabilities:

    EventSource.receive() -> SecurityEvent | None
    AlertSink.send(alert)

KafkaEventSource wraps one confluent_kafka Consumer.  Consumers are not
shared between threads: every dispatch worker gets its own, all in the same
consumer group, and partition assignment guarantees no two workers see the
same record.  Delivery is at-least-once; duplicates are not filtered.

KafkaAlertSink wraps one Producer, used only by the publisher thread.
"""

import logging

from confluent_kafka import Consumer, KafkaError, KafkaException, Producer
from confluent_kafka.admin import AdminClient, NewTopic

from threat_detector import metrics
from threat_detector.errors import TransportClosed, TransportError
from threat_detector.models import SecurityEvent, ThreatAlert

logger = logging.getLogger(__name__)

DEFAULT_INPUT_TOPIC = "security-events"
DEFAULT_OUTPUT_TOPIC = "security-alerts"
DEFAULT_GROUP_ID = "threat-detector-group"


class EventSource:
    def receive(self) -> SecurityEvent | None:
        """Next event, or None when nothing arrived before the poll timeout.

        Raises MalformedEvent for an undecodable record, TransportClosed when
        the source has been closed, TransportError on fatal failure.
        """
        raise NotImplementedError

    def close(self) -> None:
        pass


class AlertSink:
    def send(self, alert: ThreatAlert) -> None:
        """Hand one alert to the transport.  Raises TransportError on failure."""
        raise NotImplementedError

    def close(self) -> None:
        pass


def ensure_topic(bootstrap_servers, topic, num_partitions=3, replication_factor=1):
    """Create the output topic if it doesn't already exist."""
    admin = AdminClient({"bootstrap.servers": bootstrap_servers})
    fs = admin.create_topics([NewTopic(topic, num_partitions=num_partitions,
                                       replication_factor=replication_factor)])
    for t, f in fs.items():
        try:
            f.result()
            logger.info("Created topic '%s'", t)
        except KafkaException as e:
            if e.args and e.args[0].code() == KafkaError.TOPIC_ALREADY_EXISTS:
                logger.info("Topic '%s' already exists", t)
            else:
                raise


class KafkaEventSource(EventSource):

    def __init__(self, consumer, poll_timeout: float = 1.0):
        self._consumer = consumer
        self._poll_timeout = poll_timeout

    @classmethod
    def create(cls, bootstrap_servers, topic=DEFAULT_INPUT_TOPIC,
               group_id=DEFAULT_GROUP_ID, poll_timeout=1.0):
        consumer = Consumer({
            "bootstrap.servers": bootstrap_servers,
            "group.id": group_id,
            "auto.offset.reset": "earliest",
            "enable.auto.commit": True,
        })
        consumer.subscribe([topic])
        return cls(consumer, poll_timeout)

    def receive(self):
        try:
            msg = self._consumer.poll(self._poll_timeout)
        except RuntimeError as e:
            # confluent_kafka raises RuntimeError once the consumer is closed
            raise TransportClosed(str(e)) from e
        except KafkaException as e:
            raise TransportError(f"consumer poll failed: {e}") from e

        if msg is None:
            return None
        err = msg.error()
        if err is not None:
            if err.code() == KafkaError._PARTITION_EOF:
                return None
            if err.fatal():
                raise TransportError(f"fatal consumer error: {err}")
            logger.warning("Consumer error: %s", err)
            return None

        return SecurityEvent.from_json(msg.value() or b"")

    def close(self):
        try:
            self._consumer.close()
        except RuntimeError:
            pass  # already closed


class KafkaAlertSink(AlertSink):

    def __init__(self, producer, topic=DEFAULT_OUTPUT_TOPIC, flush_timeout=10.0):
        self._producer = producer
        self._topic = topic
        self._flush_timeout = flush_timeout

    @classmethod
    def create(cls, bootstrap_servers, topic=DEFAULT_OUTPUT_TOPIC):
        return cls(Producer({"bootstrap.servers": bootstrap_servers}), topic)

    def send(self, alert):
        try:
            self._producer.produce(
                self._topic,
                key=alert.source_ip.encode("utf-8"),
                value=alert.to_json(),
                on_delivery=_on_delivery,
            )
        except BufferError as e:
            raise TransportError(f"producer queue full: {e}") from e
        except KafkaException as e:
            raise TransportError(f"produce failed: {e}") from e
        # Serve delivery callbacks without blocking
        self._producer.poll(0)

    def close(self):
        remaining = self._producer.flush(self._flush_timeout)
        if remaining:
            logger.error("%d alert(s) still undelivered after flush", remaining)


def _on_delivery(err, msg):
    if err is not None:
        metrics.publish_errors_total.inc()
        logger.error("Alert delivery failed: %s", err)
