"""Typed events and alerts.

SecurityEvent is what the detector consumes from security-events; ThreatAlert
is what it publishes to security-alerts.  Both are frozen — once decoded or
emitted they are passed between threads without copying.

The alert payload field names are a wire contract with downstream consumers
(SIEM dashboards, the alert tail in consumer.py).  Do not rename them.
"""

from __future__ import annotations

import json
import re
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from threat_detector.errors import MalformedEvent

_STRING_FIELDS = ("source", "source_ip", "event_type", "user", "action",
                  "result", "raw_log")

# Seconds fraction of any length; RFC3339Nano sends up to 9 digits
_FRACTION = re.compile(r"(\d{2}:\d{2}:\d{2})\.(\d+)")


class Severity(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class ThreatType(str, Enum):
    BRUTE_FORCE = "BRUTE_FORCE"
    PRIVILEGE_ESCALATION = "PRIVILEGE_ESCALATION"
    SUSPICIOUS_USER = "SUSPICIOUS_USER"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_alert_id(prefix: str) -> str:
    """Return ``<prefix>-<unix ns>-<8 hex>``.

    Nanosecond time alone still collides when two workers (or two replicas)
    emit in the same tick, so a random suffix is appended.
    """
    return f"{prefix}-{time.time_ns()}-{secrets.token_hex(4)}"


def _parse_timestamp(value: Any) -> datetime:
    if value is None or value == "":
        return utcnow()
    if isinstance(value, bool):
        raise MalformedEvent(f"invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise MalformedEvent(f"invalid timestamp: {value!r}") from e
    if not isinstance(value, str):
        raise MalformedEvent(f"invalid timestamp: {value!r}")
    text = value.strip()
    # fromisoformat() only accepts a trailing "Z" from 3.11 on
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    # and before 3.11 only takes a fraction of exactly 3 or 6 digits
    text = _FRACTION.sub(
        lambda m: f"{m.group(1)}.{m.group(2)[:6]:0<6}", text, count=1,
    )
    try:
        ts = datetime.fromisoformat(text)
    except ValueError as e:
        raise MalformedEvent(f"invalid timestamp: {value!r}") from e
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass(frozen=True)
class SecurityEvent:
    timestamp: datetime
    source: str = ""
    source_ip: str = ""
    event_type: str = ""
    user: str = ""
    action: str = ""
    result: str = ""
    raw_log: str = ""
    metadata: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> SecurityEvent:
        """Build an event from a decoded JSON object.

        Missing string fields become "", a missing timestamp becomes now.
        Anything structurally wrong raises MalformedEvent.
        """
        if not isinstance(data, dict):
            raise MalformedEvent(
                f"event must be a JSON object, got {type(data).__name__}"
            )

        values = {}
        for name in _STRING_FIELDS:
            value = data.get(name)
            if value is None:
                value = ""
            elif isinstance(value, (dict, list)):
                raise MalformedEvent(f"field '{name}' must be a string")
            values[name] = str(value)

        metadata = data.get("metadata") or {}
        if not isinstance(metadata, dict):
            raise MalformedEvent("field 'metadata' must be an object")

        return cls(
            timestamp=_parse_timestamp(data.get("timestamp")),
            metadata={str(k): str(v) for k, v in metadata.items()},
            **values,
        )

    @classmethod
    def from_json(cls, payload: bytes | str) -> SecurityEvent:
        try:
            if isinstance(payload, bytes):
                payload = payload.decode("utf-8")
            data = json.loads(payload)
        except (UnicodeDecodeError, RecursionError, ValueError) as e:
            raise MalformedEvent(f"undecodable event: {e}") from e
        return cls.from_dict(data)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
            "source_ip": self.source_ip,
            "event_type": self.event_type,
            "user": self.user,
            "action": self.action,
            "result": self.result,
            "raw_log": self.raw_log,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class ThreatAlert:
    alert_id: str
    timestamp: datetime
    severity: Severity
    threat_type: ThreatType
    source_ip: str
    details: str
    event_count: int = 0
    raw_events: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "alert_id": self.alert_id,
            "timestamp": self.timestamp.isoformat(),
            "severity": self.severity.value,
            "threat_type": self.threat_type.value,
            "source_ip": self.source_ip,
            "details": self.details,
            "event_count": self.event_count,
            "raw_events": list(self.raw_events),
        }

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict()).encode("utf-8")
