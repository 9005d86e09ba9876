"""Security event generator.

Simulates normalized auth/syslog traffic from a pool of hosts with
configurable benign and hostile profiles.  Event schemas match what the
threat detector consumes (timestamp, source, source_ip, event_type, user,
action, result, raw_log, metadata).

Usage:
    python producer.py
    python producer.py --normal 20 --brute-forcers 2 --scanners 2 --escalators 1
    python producer.py --eps 100 --topic security-events
"""

import argparse
import json
import random
import signal
import time
from dataclasses import dataclass
from datetime import datetime, timezone

from confluent_kafka import Producer

from threat_detector.transport import ensure_topic

USERS = ["alice", "bob", "carol", "deploy", "backup", "www-data"]
INVALID_USERS = ["admin", "test", "oracle", "ubuntu", "pi", "guest", "ftpuser"]
SENSITIVE_COMMANDS = [
    "/bin/cat /etc/shadow",
    "/usr/bin/vi /etc/passwd",
    "/bin/ls /root",
    "/bin/chmod 777 /var/www",
    "/usr/sbin/useradd -o -u 0 svc",
]
BENIGN_COMMANDS = ["/usr/bin/apt update", "/bin/systemctl restart nginx",
                   "/usr/bin/journalctl -u sshd"]

running = True


def _shutdown(sig, frame):
    global running
    print("\nShutting down generator...")
    running = False


# ---------------------------------------------------------------------------
# Host profiles
# ---------------------------------------------------------------------------

@dataclass
class Host:
    ip: str
    hostname: str
    role: str  # normal | brute_forcer | scanner | escalator
    events_per_min: float


def _create_hosts(n_normal, n_brute_forcers, n_scanners, n_escalators):
    """Build the host pool.  Hostile hosts live in a separate /24."""
    hosts = []
    profiles = [
        ("normal", n_normal, "10.0.1", (5, 30)),
        ("brute_forcer", n_brute_forcers, "203.0.113", (60, 120)),
        ("scanner", n_scanners, "198.51.100", (30, 90)),
        ("escalator", n_escalators, "10.0.9", (2, 6)),
    ]
    for role, count, prefix, epm in profiles:
        for i in range(count):
            hosts.append(Host(
                ip=f"{prefix}.{len(hosts) + 10}",
                hostname=f"{role.replace('_', '-')}-{i:02d}",
                role=role,
                events_per_min=random.uniform(*epm),
            ))
    return hosts


# ---------------------------------------------------------------------------
# Event generation
# ---------------------------------------------------------------------------

def _syslog_prefix(host: Host, program: str) -> str:
    ts = datetime.now().strftime("%b %d %H:%M:%S")
    return f"{ts} {host.hostname} {program}[{random.randint(1000, 65000)}]:"


def auth_event(host: Host, user: str, success: bool, invalid: bool = False) -> dict:
    port = random.randint(30000, 60000)
    if success:
        line = f"Accepted password for {user} from {host.ip} port {port} ssh2"
    elif invalid:
        line = f"Failed password for invalid user {user} from {host.ip} port {port} ssh2"
    else:
        line = f"Failed password for {user} from {host.ip} port {port} ssh2"
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "source": "sshd",
        "source_ip": host.ip,
        "event_type": "authentication",
        "user": user,
        "action": "login",
        "result": "success" if success else "failed",
        "raw_log": f"{_syslog_prefix(host, 'sshd')} {line}",
        "metadata": {"hostname": host.hostname, "port": str(port)},
    }


def sudo_event(host: Host, user: str, command: str) -> dict:
    line = (f"{user} : TTY=pts/0 ; PWD=/home/{user} ; USER=root ; "
            f"COMMAND={command}")
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "source": "sudo",
        "source_ip": host.ip,
        "event_type": "privilege_change",
        "user": user,
        "action": "sudo",
        "result": "success",
        "raw_log": f"{_syslog_prefix(host, 'sudo')} {line}",
        "metadata": {"hostname": host.hostname},
    }


def make_event(host: Host) -> dict:
    """Generate a single event for a host based on its role."""
    if host.role == "brute_forcer":
        return auth_event(host, random.choice(USERS[:3]), success=False)
    if host.role == "scanner":
        return auth_event(host, random.choice(INVALID_USERS), success=False,
                          invalid=True)
    if host.role == "escalator":
        command = random.choice(SENSITIVE_COMMANDS if random.random() < 0.5
                                else BENIGN_COMMANDS)
        return sudo_event(host, random.choice(USERS), command)

    # Normal host: mostly successful logins, a typo now and then, some sudo
    roll = random.random()
    if roll < 0.1:
        return sudo_event(host, random.choice(USERS), random.choice(BENIGN_COMMANDS))
    return auth_event(host, random.choice(USERS), success=roll > 0.15)


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(description="Security event generator")
    parser.add_argument("--bootstrap-servers", default="localhost:9092")
    parser.add_argument("--topic", default="security-events")
    parser.add_argument("--normal", type=int, default=8)
    parser.add_argument("--brute-forcers", type=int, default=1)
    parser.add_argument("--scanners", type=int, default=1)
    parser.add_argument("--escalators", type=int, default=1)
    parser.add_argument("--eps", type=float, default=50, help="Target events/sec")
    args = parser.parse_args()

    signal.signal(signal.SIGINT, _shutdown)   # Ctrl+C (local dev)
    signal.signal(signal.SIGTERM, _shutdown)  # docker stop / k8s pod termination

    hosts = _create_hosts(
        args.normal, args.brute_forcers, args.scanners, args.escalators,
    )
    weights = [h.events_per_min for h in hosts]

    print(f"Generating to topic '{args.topic}' at ~{args.eps} events/sec")
    print(f"Hosts: {len(hosts)} total")
    for h in hosts:
        print(f"  {h.ip:<15s} {h.role:<13s} ~{h.events_per_min:>6.0f} epm  {h.hostname}")

    ensure_topic(args.bootstrap_servers, args.topic)

    producer = Producer({
        "bootstrap.servers": args.bootstrap_servers,
        "acks": "all",
        "client.id": "security-event-generator",
    })

    count = 0
    delay = 1.0 / args.eps

    while running:
        host = random.choices(hosts, weights=weights, k=1)[0]
        event = make_event(host)

        producer.produce(
            topic=args.topic,
            key=event["source_ip"].encode(),
            value=json.dumps(event),
        )
        producer.poll(0)

        count += 1
        if count % 500 == 0:
            print(f"  ... {count} events produced")

        time.sleep(delay)

    producer.flush()
    print(f"Done. {count} events produced.")


if __name__ == "__main__":
    main()
