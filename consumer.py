"""Alert tail — prints threat alerts as the detector publishes them.

Usage:
    python consumer.py
    python consumer.py --bootstrap-servers kafka-1:29092 --topic security-alerts
"""

import argparse
import json
import signal

from confluent_kafka import Consumer, KafkaError

running = True


def _shutdown(sig, frame):
    global running
    print("\nShutting down consumer...")
    running = False


def format_alert(alert: dict) -> str:
    return (f"[{alert.get('severity', '?'):<6s}] "
            f"{alert.get('threat_type', '?'):<20s} "
            f"src={alert.get('source_ip', '?'):<15s} "
            f"events={alert.get('event_count', 0):<3d} "
            f"{alert.get('details', '')}")


def main():
    parser = argparse.ArgumentParser(description="Alert tail")
    parser.add_argument("--bootstrap-servers", default="localhost:9092")
    parser.add_argument("--topic", default="security-alerts")
    parser.add_argument("--group-id", default="alert-tail")
    args = parser.parse_args()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    consumer = Consumer({
        "bootstrap.servers": args.bootstrap_servers,
        "group.id": args.group_id,
        "auto.offset.reset": "latest",
        "enable.auto.commit": True,
    })
    consumer.subscribe([args.topic])

    count = 0
    try:
        while running:
            msg = consumer.poll(1.0)
            if msg is None:
                continue
            if msg.error():
                if msg.error().code() != KafkaError._PARTITION_EOF:
                    print(f"Consumer error: {msg.error()}")
                continue

            try:
                alert = json.loads(msg.value().decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError):
                continue
            count += 1
            print(format_alert(alert))
    finally:
        consumer.close()
        print(f"Done. {count} alerts consumed.")


if __name__ == "__main__":
    main()
